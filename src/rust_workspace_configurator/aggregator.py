# =============================================================================
# Launch Configuration Aggregation
# =============================================================================

import os
from collections import Counter
from dataclasses import dataclass, field, replace
from pathlib import Path

from loguru import logger

from .manifest_locator import Project
from .metadata_provider import Package, Target, TargetKind

DEBUGGER_TYPE = "lldb"
WORKSPACE_FOLDER = "${workspaceFolder}"

# Asset root convention read by Bevy at runtime; always mirrors cwd
ASSET_ROOT_ENV = "BEVY_ASSET_ROOT"

EXAMPLE_SUFFIX = " (example)"


@dataclass(frozen=True)
class ResolvedProject:
    """A discovered project paired with the package its metadata resolved to."""

    project: Project
    package: Package


@dataclass(frozen=True)
class LaunchConfig:
    name: str
    cwd: str
    env: dict = field(default_factory=dict)
    cargo_args: tuple[str, ...] = ()
    args: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": DEBUGGER_TYPE,
            "request": "launch",
            "cwd": self.cwd,
            "env": dict(self.env),
            "cargo": {"args": list(self.cargo_args)},
            "args": list(self.args),
        }


def relative_posix(path: Path, root: Path) -> str:
    """Path of ``path`` relative to ``root`` with forward slashes, '.' if equal."""
    relative = os.path.relpath(Path(path).absolute(), Path(root).absolute())
    return Path(relative).as_posix()


def working_directory(project: Project, root: Path) -> str:
    relative = relative_posix(project.path, root)
    if relative == ".":
        return WORKSPACE_FOLDER
    return f"{WORKSPACE_FOLDER}/{relative}"


def display_name(package: Package, target: Target, namespaced: bool) -> str:
    if not namespaced:
        return target.name
    name = f"{package.name}::{target.name}"
    if target.kind is TargetKind.EXAMPLE:
        name += EXAMPLE_SUFFIX
    return name


def cargo_arguments(package: Package, target: Target) -> list[str]:
    """Build the ``cargo`` argument list for one target; features sorted."""
    selector = "--bin" if target.kind is TargetKind.BINARY else "--example"
    args = ["run", f"{selector}={target.name}", f"--package={package.name}"]
    if target.required_features:
        args.append(f"--features={','.join(sorted(target.required_features))}")
    return args


def launch_config_for(
    resolved: ResolvedProject,
    target: Target,
    root: Path,
    namespaced: bool
) -> LaunchConfig:
    cwd = working_directory(resolved.project, root)
    label = "binary" if target.kind is TargetKind.BINARY else "example"
    return LaunchConfig(
        name=f"Debug {label} '{display_name(resolved.package, target, namespaced)}'",
        cwd=cwd,
        env={ASSET_ROOT_ENV: cwd},
        cargo_args=tuple(cargo_arguments(resolved.package, target)),
    )


def aggregate(
    resolved_projects: list[ResolvedProject],
    root: Path,
    project_count: int | None = None
) -> list[LaunchConfig]:
    """
    Turn every runnable target into a LaunchConfig in canonical order.

    Order is (project discovery index, binaries before examples, target
    name), re-established here regardless of the order ``resolved_projects``
    arrives in.

    Two separate projects can declare the same package name. Names that
    still collide after namespacing are qualified with the project path.

    Args:
        resolved_projects: Projects whose metadata resolved, any order
        root: Output root used for working directories
        project_count: Number of projects discovered in the run; defaults to
            len(resolved_projects). Names are namespaced when it exceeds 1.

    Returns:
        list[LaunchConfig] with pairwise-unique names
    """
    if project_count is None:
        project_count = len(resolved_projects)
    namespaced = project_count > 1

    entries = [
        (resolved.project.index, target.kind.sort_rank, target.name, resolved, target)
        for resolved in resolved_projects
        for target in resolved.package.targets
    ]
    entries.sort(key=lambda entry: entry[:3])

    configs = [
        launch_config_for(resolved, target, root, namespaced)
        for _, _, _, resolved, target in entries
    ]

    counts = Counter(config.name for config in configs)
    collisions = sorted(name for name, count in counts.items() if count > 1)
    if collisions:
        configs = [
            replace(config, name=f"{config.name} [{relative_posix(entry[3].project.path, root)}]")
            if counts[config.name] > 1 else config
            for config, entry in zip(configs, entries)
        ]
        logger.warning(
            "Launch names collided across projects, qualified with project path",
            operation="aggregate",
            status="disambiguated",
            names=collisions
        )

    logger.debug(
        "Launch configurations aggregated",
        operation="aggregate",
        status="success",
        namespaced=namespaced,
        metrics={"projects": len(resolved_projects), "configurations": len(configs)}
    )

    return configs
