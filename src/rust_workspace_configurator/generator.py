# =============================================================================
# Generator Pipeline
# =============================================================================
"""
discover → query metadata → aggregate → build descriptor → write.

Per-project metadata failures are collected in an ErrorReport and the run
continues with the projects that resolved. Fatal conditions end the run
before anything is written.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from uuid import uuid4

from loguru import logger

from .aggregator import LaunchConfig, ResolvedProject, aggregate
from .backup_writer import DEFAULT_BACKUP_SUFFIX, WriteOutcome, write_with_backup
from .descriptor import WorkspaceDescriptor, build_descriptor, workspace_filename
from .errors import Error, ErrorReport, ErrorType, Result
from .logging_config import trace_id_var
from .manifest_locator import Project, locate_projects
from .metadata_provider import MetadataProvider, package_for_manifest


class RunStatus(Enum):
    SUCCESS = "success"
    PARTIAL = "partial"  # Written, but some projects failed
    NO_RUNNABLES = "no_runnables"  # Nothing to launch, nothing written
    FAILED = "failed"


@dataclass
class RunSummary:
    status: RunStatus
    report: ErrorReport
    projects: list[Project] = field(default_factory=list)
    configurations: list[LaunchConfig] = field(default_factory=list)
    descriptor: WorkspaceDescriptor | None = None
    outcome: WriteOutcome | None = None
    fatal: Error | None = None

    @property
    def ok(self) -> bool:
        return self.status is not RunStatus.FAILED


def resolve_project(project: Project, provider: MetadataProvider) -> Result[ResolvedProject]:
    """Query metadata for one project and pick the package its manifest declares."""
    result = provider.query(project.manifest_path)
    if result.is_err():
        return result

    package = package_for_manifest(result.value, project.manifest_path)
    if package is None:
        return Result.err(Error(
            error_type=ErrorType.METADATA_RETRIEVAL_FAILED,
            message=f"Could not find package for manifest {project.manifest_path}",
            context={"manifest": str(project.manifest_path)}
        ))

    return Result.ok(ResolvedProject(project=project, package=package))


def resolve_projects(
    projects: list[Project],
    provider: MetadataProvider,
    report: ErrorReport,
    jobs: int = 1
) -> list[ResolvedProject]:
    """
    Resolve every project, sequentially or on a thread pool.

    Results come back in discovery order either way; failures are added to
    ``report`` in discovery order as well.
    """
    if jobs > 1 and len(projects) > 1:
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            results = list(pool.map(lambda project: resolve_project(project, provider), projects))
    else:
        results = [resolve_project(project, provider) for project in projects]

    resolved = []
    for result in results:
        if report.collect_result(result):
            resolved.append(result.value)

    return sorted(resolved, key=lambda item: item.project.index)


def _fail(report: ErrorReport, error: Error, **details) -> RunSummary:
    logger.bind(
        operation="generate",
        status="failed",
        error_type=error.error_type.value
    ).error(error.message)
    return RunSummary(status=RunStatus.FAILED, report=report, fatal=error, **details)


def generate_workspace(
    root: Path,
    provider: MetadataProvider,
    skip_dirs: list[str] | None = None,
    jobs: int = 1,
    backup_suffix: str = DEFAULT_BACKUP_SUFFIX
) -> RunSummary:
    """
    Generate ``<root-name>.code-workspace`` in ``root``.

    Args:
        root: Scan root and output directory
        provider: Metadata source
        skip_dirs: Extra directory names to skip while scanning
        jobs: Parallel metadata queries
        backup_suffix: Suffix for backups of an existing descriptor

    Returns:
        RunSummary; status FAILED when no project was found, every
        project failed, or the write failed. NO_RUNNABLES when metadata
        resolved but no binary or example exists; nothing is written.
    """
    start_time = time.perf_counter()
    op_trace_id = str(uuid4())
    token = trace_id_var.set(op_trace_id)
    report = ErrorReport()
    root = Path(root).absolute()

    try:
        logger.info(
            "Workspace generation starting",
            operation="generate",
            status="started",
            trace_id=op_trace_id,
            root=str(root),
            jobs=jobs
        )

        located = locate_projects(root, provider, report, skip_dirs)
        if located.is_err():
            return _fail(report, located.error)
        projects = located.value

        if not projects and not report.has_errors():
            # Manifests exist, but every workspace among them has no members
            return _fail(report, Error(
                error_type=ErrorType.MANIFEST_NOT_FOUND,
                message=f"No Rust projects found in {root}: the workspaces found declare no members",
                context={"root": str(root)}
            ))

        resolved = resolve_projects(projects, provider, report, jobs=jobs)
        if not resolved:
            failures = report.errors_of(ErrorType.METADATA_RETRIEVAL_FAILED)
            return _fail(report, Error(
                error_type=ErrorType.METADATA_RETRIEVAL_FAILED,
                message=f"Metadata could not be read for any project under {root}",
                context={"root": str(root), "failures": len(failures)}
            ), projects=projects)

        configurations = aggregate(resolved, root, project_count=len(projects))
        if not configurations:
            report.add_warning(Error(
                error_type=ErrorType.NO_RUNNABLES,
                message=f"No runnables found in {root}; no workspace file written",
                context={"root": str(root)}
            ))
            return RunSummary(status=RunStatus.NO_RUNNABLES, report=report, projects=projects)

        descriptor = build_descriptor(projects, configurations, root)
        written = write_with_backup(
            root / workspace_filename(root),
            descriptor.to_json(),
            report,
            suffix=backup_suffix
        )
        if written.is_err():
            return _fail(
                report,
                written.error,
                projects=projects,
                configurations=configurations,
                descriptor=descriptor
            )

        status = RunStatus.PARTIAL if report.has_errors() else RunStatus.SUCCESS
        duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "Workspace generation complete",
            operation="generate",
            status=status.value,
            trace_id=op_trace_id,
            path=str(written.value.path),
            metrics={
                "projects": len(projects),
                "resolved_projects": len(resolved),
                "configurations": len(configurations),
                "duration_ms": duration_ms
            }
        )

        return RunSummary(
            status=status,
            report=report,
            projects=projects,
            configurations=configurations,
            descriptor=descriptor,
            outcome=written.value
        )
    finally:
        report.log_summary(op_trace_id)
        trace_id_var.reset(token)
