# =============================================================================
# Project Discovery
# =============================================================================

import time
import tomllib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from uuid import uuid4

from loguru import logger

from .errors import Error, ErrorReport, ErrorType, Result
from .metadata_provider import MetadataProvider, canonical

MANIFEST_NAME = "Cargo.toml"

# Build output and vendored JS trees never hold projects worth listing
SKIP_DIRS = frozenset({"target", "node_modules"})


class ProjectKind(Enum):
    PACKAGE = "package"
    WORKSPACE_MEMBER = "workspace_member"


@dataclass(frozen=True)
class Project:
    path: Path
    kind: ProjectKind
    index: int

    @property
    def manifest_path(self) -> Path:
        return self.path / MANIFEST_NAME


def is_workspace_manifest(manifest_path: Path) -> bool:
    """
    Check whether a manifest declares a ``[workspace]`` table.

    Unparseable manifests count as plain packages; cargo reports the real
    problem when the project's metadata is queried.
    """
    try:
        with open(manifest_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(
            "Cannot parse manifest, treating it as a plain package",
            operation="classify_manifest",
            status="fallback",
            manifest=str(manifest_path),
            error=str(e),
            error_type=type(e).__name__
        )
        return False
    return isinstance(data.get("workspace"), dict)


class ManifestLocator:
    """
    Classify a scan root and produce Projects in discovery order.

    A root holding a manifest is the only project source (or its workspace
    members are). Otherwise subdirectories are walked in sorted order, and a
    directory holding a manifest is claimed and not descended into.
    """

    def __init__(
        self,
        provider: MetadataProvider,
        report: ErrorReport,
        skip_dirs: frozenset[str] | set[str] = SKIP_DIRS
    ):
        self.provider = provider
        self.report = report
        self.skip_dirs = frozenset(skip_dirs)
        self._visited: set[Path] = set()
        self._claimed: set[Path] = set()
        self._projects: list[Project] = []
        self._manifests_found = 0

    def locate(self, root: Path) -> Result[list[Project]]:
        start_time = time.perf_counter()
        op_trace_id = str(uuid4())
        root = Path(root).absolute()

        logger.debug(
            "Starting project discovery",
            operation="locate_projects",
            status="started",
            trace_id=op_trace_id,
            root=str(root)
        )

        if (root / MANIFEST_NAME).is_file():
            self._claim_manifest_dir(root)
        else:
            self._walk(root)

        if self._manifests_found == 0:
            logger.error(
                "No Cargo.toml found",
                operation="locate_projects",
                status="failed",
                trace_id=op_trace_id,
                root=str(root)
            )
            return Result.err(Error(
                error_type=ErrorType.MANIFEST_NOT_FOUND,
                message=f"No Rust projects ({MANIFEST_NAME} files) found in {root}",
                context={"root": str(root)}
            ))

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.debug(
            "Project discovery complete",
            operation="locate_projects",
            status="success",
            trace_id=op_trace_id,
            metrics={
                "manifests_found": self._manifests_found,
                "projects_found": len(self._projects),
                "duration_ms": duration_ms
            }
        )

        return Result.ok(list(self._projects))

    def _walk(self, directory: Path) -> None:
        key = canonical(directory)
        if key in self._visited or key in self._claimed:
            logger.debug(
                "Directory already visited, not descending",
                operation="scan_directory",
                directory=str(directory)
            )
            return
        self._visited.add(key)

        if (directory / MANIFEST_NAME).is_file():
            self._claim_manifest_dir(directory)
            return

        try:
            children = sorted(
                (child for child in directory.iterdir() if child.is_dir()),
                key=lambda child: child.name
            )
        except OSError as e:
            logger.debug(
                "Skipping unreadable directory",
                operation="scan_directory",
                status="skip",
                directory=str(directory),
                error=str(e)
            )
            return

        for child in children:
            if child.name.startswith(".") or child.name in self.skip_dirs:
                continue
            self._walk(child)

    def _claim_manifest_dir(self, directory: Path) -> None:
        self._manifests_found += 1
        manifest = directory / MANIFEST_NAME

        if is_workspace_manifest(manifest):
            for member_dir in self._workspace_members(directory, manifest):
                self._add_project(member_dir, ProjectKind.WORKSPACE_MEMBER)
        else:
            self._add_project(directory, ProjectKind.PACKAGE)

    def _workspace_members(self, workspace_dir: Path, manifest: Path) -> list[Path]:
        """Member directories of a workspace, expressed under ``workspace_dir``."""
        result = self.provider.query(manifest)
        if not self.report.collect_result(result):
            return []

        workspace_key = canonical(result.value.workspace_root)
        inside: list[tuple[str, Path]] = []
        outside: list[tuple[str, Path]] = []
        for member_manifest in result.value.workspace_member_manifests:
            member_dir = canonical(member_manifest.parent)
            try:
                relative = member_dir.relative_to(workspace_key)
            except ValueError:
                # Member declared with a path outside the workspace directory
                outside.append((str(member_dir), member_dir))
                continue
            inside.append((relative.as_posix(), workspace_dir / relative))

        if not inside and not outside:
            logger.warning(
                "Workspace declares no members",
                operation="workspace_members",
                status="empty",
                manifest=str(manifest)
            )

        return [path for _, path in sorted(inside) + sorted(outside)]

    def _add_project(self, path: Path, kind: ProjectKind) -> None:
        key = canonical(path)
        if key in self._claimed:
            logger.debug(
                "Project already claimed, skipping duplicate",
                operation="add_project",
                status="duplicate",
                project=str(path)
            )
            return
        self._claimed.add(key)
        self._projects.append(Project(path=path, kind=kind, index=len(self._projects)))


def locate_projects(
    root: Path,
    provider: MetadataProvider,
    report: ErrorReport,
    extra_skip_dirs: list[str] | None = None
) -> Result[list[Project]]:
    """
    Discover the Cargo projects under ``root``.

    Args:
        root: Scan root (also the output root)
        provider: Used to resolve workspace member paths
        report: Collects per-workspace metadata failures
        extra_skip_dirs: Directory names to skip on top of SKIP_DIRS

    Returns:
        Result[list[Project]]: Ok with projects in discovery order (possibly
        empty when every workspace failed to resolve), or Err with
        MANIFEST_NOT_FOUND
    """
    skip_dirs = SKIP_DIRS | frozenset(extra_skip_dirs or [])
    return ManifestLocator(provider, report, skip_dirs).locate(root)
