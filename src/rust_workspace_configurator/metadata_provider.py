# =============================================================================
# Cargo Metadata Provider
# =============================================================================
"""
Package and target data for a manifest, sourced from ``cargo metadata``.

The rest of the pipeline only depends on the ``MetadataProvider`` protocol
(``query(manifest_path) -> Result[CargoMetadata]``), so tests can swap in a
provider that returns fixed fixtures without running cargo.
"""

import json
import os
import subprocess
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from loguru import logger

from .errors import Error, ErrorType, Result

DEFAULT_TIMEOUT_SECONDS = 120


class TargetKind(Enum):
    BINARY = "bin"
    EXAMPLE = "example"

    @property
    def sort_rank(self) -> int:
        # Binaries are listed before examples
        return 0 if self is TargetKind.BINARY else 1


@dataclass(frozen=True)
class Target:
    kind: TargetKind
    name: str
    required_features: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class Package:
    name: str
    manifest_path: Path
    targets: tuple[Target, ...] = ()


@dataclass(frozen=True)
class CargoMetadata:
    workspace_root: Path
    packages: tuple[Package, ...] = ()
    workspace_member_manifests: tuple[Path, ...] = ()


class MetadataProvider(Protocol):
    def query(self, manifest_path: Path) -> Result[CargoMetadata]:
        ...


def canonical(path: Path) -> Path:
    """Symlink-resolved path, or the absolute path if it cannot be resolved."""
    try:
        return Path(path).resolve()
    except (OSError, RuntimeError):
        return Path(os.path.abspath(path))


def parse_targets(raw_targets: list[dict]) -> tuple[Target, ...]:
    """Keep runnable targets only (bin and example kinds)."""
    targets = []
    for raw in raw_targets:
        kinds = raw.get("kind", [])
        features = frozenset(raw.get("required-features") or [])
        for kind in (TargetKind.BINARY, TargetKind.EXAMPLE):
            if kind.value in kinds:
                targets.append(Target(kind=kind, name=raw["name"], required_features=features))
    return tuple(targets)


def parse_metadata(payload: dict) -> CargoMetadata:
    """
    Convert ``cargo metadata --format-version 1`` JSON into CargoMetadata.

    Raises:
        KeyError, TypeError: If required fields are missing or mistyped
    """
    packages = []
    manifests_by_id = {}
    for raw in payload["packages"]:
        package = Package(
            name=raw["name"],
            manifest_path=Path(raw["manifest_path"]),
            targets=parse_targets(raw.get("targets", [])),
        )
        packages.append(package)
        manifests_by_id[raw["id"]] = package.manifest_path

    members = tuple(
        manifests_by_id[member_id]
        for member_id in payload.get("workspace_members", [])
        if member_id in manifests_by_id
    )

    return CargoMetadata(
        workspace_root=Path(payload["workspace_root"]),
        packages=tuple(packages),
        workspace_member_manifests=members,
    )


def package_for_manifest(metadata: CargoMetadata, manifest_path: Path) -> Package | None:
    """Find the package declared by ``manifest_path``, comparing canonical paths."""
    wanted = canonical(manifest_path)
    for package in metadata.packages:
        if canonical(package.manifest_path) == wanted:
            return package
    return None


class CargoMetadataProvider:
    """Runs ``cargo metadata`` with all features enabled, one manifest per call."""

    def __init__(self, command: str = "cargo", timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.command = command
        self.timeout = timeout

    def build_command(self, manifest_path: Path) -> list[str]:
        return [
            self.command,
            "metadata",
            "--format-version", "1",
            "--no-deps",
            "--all-features",
            "--manifest-path", str(manifest_path),
        ]

    def query(self, manifest_path: Path) -> Result[CargoMetadata]:
        start_time = time.perf_counter()
        op_trace_id = str(uuid4())
        context = {"manifest": str(manifest_path)}

        logger.debug(
            "Querying cargo metadata",
            operation="cargo_metadata",
            status="started",
            trace_id=op_trace_id,
            manifest=str(manifest_path)
        )

        try:
            result = subprocess.run(
                self.build_command(manifest_path),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False  # Non-zero exit is reported as a per-project failure
            )
        except subprocess.TimeoutExpired as e:
            return Result.err(Error(
                error_type=ErrorType.METADATA_RETRIEVAL_FAILED,
                message=f"cargo metadata timed out after {self.timeout}s for {manifest_path}",
                context=context,
                original_exception=e
            ))
        except FileNotFoundError as e:
            return Result.err(Error(
                error_type=ErrorType.METADATA_RETRIEVAL_FAILED,
                message=f"'{self.command}' not found while reading {manifest_path}",
                context=context,
                original_exception=e
            ))
        except OSError as e:
            return Result.err(Error(
                error_type=ErrorType.METADATA_RETRIEVAL_FAILED,
                message=f"Failed to run cargo metadata for {manifest_path}: {e}",
                context=context,
                original_exception=e
            ))

        if result.returncode != 0:
            stderr = result.stderr.strip() if result.stderr else ""
            return Result.err(Error(
                error_type=ErrorType.METADATA_RETRIEVAL_FAILED,
                message=f"Failed to read metadata for {manifest_path}: {stderr or 'exit status ' + str(result.returncode)}",
                context={**context, "returncode": result.returncode}
            ))

        try:
            metadata = parse_metadata(json.loads(result.stdout))
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            return Result.err(Error(
                error_type=ErrorType.METADATA_RETRIEVAL_FAILED,
                message=f"Unexpected cargo metadata output for {manifest_path}: {e}",
                context=context,
                original_exception=e
            ))

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.debug(
            "Cargo metadata loaded",
            operation="cargo_metadata",
            status="success",
            trace_id=op_trace_id,
            manifest=str(manifest_path),
            metrics={"packages": len(metadata.packages), "duration_ms": duration_ms}
        )

        return Result.ok(metadata)
