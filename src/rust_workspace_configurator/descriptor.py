# =============================================================================
# Workspace Descriptor (.code-workspace) Synthesis
# =============================================================================

import json
from dataclasses import dataclass
from pathlib import Path

from .aggregator import LaunchConfig, relative_posix
from .manifest_locator import Project

LAUNCH_VERSION = "0.2.0"
WORKSPACE_SUFFIX = ".code-workspace"
FALLBACK_ROOT_NAME = "rust-projects"


@dataclass(frozen=True)
class WorkspaceDescriptor:
    folders: tuple[str, ...]
    configurations: tuple[LaunchConfig, ...] = ()
    name: str | None = None
    version: str = LAUNCH_VERSION

    def to_dict(self) -> dict:
        document = {"folders": [{"path": path} for path in self.folders]}
        if self.name is not None:
            document["name"] = self.name
        document["launch"] = {
            "version": self.version,
            "configurations": [config.to_dict() for config in self.configurations],
        }
        return document

    def to_json(self) -> str:
        """Stable rendering: fixed key order, two-space indent, trailing newline."""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"


def root_name(root: Path) -> str:
    name = Path(root).absolute().name
    return name or FALLBACK_ROOT_NAME


def workspace_filename(root: Path) -> str:
    """Always ``<root-name>.code-workspace``, whatever the project count."""
    return f"{root_name(root)}{WORKSPACE_SUFFIX}"


def workspace_name(root: Path, project_count: int) -> str:
    if project_count > 1:
        return f"{root_name(root)} ({project_count} Rust Projects)"
    return f"{root_name(root)} (Rust)"


def folder_path(project: Project, root: Path) -> str:
    relative = relative_posix(project.path, root)
    return "." if relative == "." else f"./{relative}"


def build_descriptor(
    projects: list[Project],
    configurations: list[LaunchConfig],
    root: Path
) -> WorkspaceDescriptor:
    """
    Assemble a fresh descriptor for ``root``.

    Nothing is read from an existing descriptor at the destination; the
    previous file survives only as a backup.

    Args:
        projects: Every discovered project, in discovery order
        configurations: Output of aggregate()
        root: Output root

    Returns:
        WorkspaceDescriptor
    """
    ordered = sorted(projects, key=lambda project: project.index)
    folders = tuple(folder_path(project, root) for project in ordered) or (".",)
    return WorkspaceDescriptor(
        folders=folders,
        configurations=tuple(configurations),
        name=workspace_name(root, len(projects)),
    )
