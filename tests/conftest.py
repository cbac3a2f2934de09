"""Shared fixtures — an on-disk Cargo tree builder and a fixture metadata provider.

No test runs the real ``cargo``: FakeMetadataProvider answers every query
from metadata registered while the tree is built.
"""

import threading
from pathlib import Path

import pytest

from rust_workspace_configurator.errors import Error, ErrorType, Result
from rust_workspace_configurator.metadata_provider import (
    CargoMetadata,
    Package,
    Target,
    TargetKind,
    canonical,
)


class FakeMetadataProvider:
    def __init__(self):
        self.fixtures: dict[Path, CargoMetadata] = {}
        self.failures: set[Path] = set()
        self.calls: list[Path] = []
        self._lock = threading.Lock()

    def register(self, manifest_path: Path, metadata: CargoMetadata) -> None:
        self.fixtures[canonical(manifest_path)] = metadata

    def fail(self, manifest_path: Path) -> None:
        self.failures.add(canonical(manifest_path))

    def query(self, manifest_path: Path) -> Result[CargoMetadata]:
        key = canonical(manifest_path)
        with self._lock:
            self.calls.append(key)
        if key in self.failures or key not in self.fixtures:
            return Result.err(Error(
                error_type=ErrorType.METADATA_RETRIEVAL_FAILED,
                message=f"Failed to read metadata for {manifest_path}",
                context={"manifest": str(manifest_path)}
            ))
        return Result.ok(self.fixtures[key])


def make_targets(bins=(), examples=(), features=None) -> tuple[Target, ...]:
    features = features or {}
    return tuple(
        [Target(TargetKind.BINARY, name, frozenset(features.get(name, ()))) for name in bins]
        + [Target(TargetKind.EXAMPLE, name, frozenset(features.get(name, ()))) for name in examples]
    )


class CargoTree:
    """Writes Cargo.toml files under a root and registers their metadata."""

    def __init__(self, root: Path, provider: FakeMetadataProvider):
        self.root = root
        self.provider = provider

    def package(self, relative: str, name: str, bins=(), examples=(), features=None) -> Path:
        directory = self.root / relative
        directory.mkdir(parents=True, exist_ok=True)
        manifest = directory / "Cargo.toml"
        manifest.write_text(f'[package]\nname = "{name}"\nversion = "0.1.0"\n')
        package = Package(name=name, manifest_path=manifest, targets=make_targets(bins, examples, features))
        self.provider.register(manifest, CargoMetadata(
            workspace_root=directory,
            packages=(package,),
            workspace_member_manifests=(manifest,),
        ))
        return directory

    def workspace(self, relative: str, members: dict[str, dict]) -> Path:
        """``members`` maps member path (relative to the workspace) to package kwargs."""
        directory = self.root / relative
        directory.mkdir(parents=True, exist_ok=True)
        manifest = directory / "Cargo.toml"
        member_list = ", ".join(f'"{m}"' for m in members)
        manifest.write_text(f"[workspace]\nmembers = [{member_list}]\n")

        packages = []
        for member, spec in members.items():
            member_dir = directory / member
            member_dir.mkdir(parents=True, exist_ok=True)
            member_manifest = member_dir / "Cargo.toml"
            member_manifest.write_text(f'[package]\nname = "{spec["name"]}"\nversion = "0.1.0"\n')
            packages.append(Package(
                name=spec["name"],
                manifest_path=member_manifest,
                targets=make_targets(spec.get("bins", ()), spec.get("examples", ()), spec.get("features")),
            ))

        # cargo reports members in its own order; reverse it to prove we sort
        metadata = CargoMetadata(
            workspace_root=directory,
            packages=tuple(packages),
            workspace_member_manifests=tuple(p.manifest_path for p in reversed(packages)),
        )
        self.provider.register(manifest, metadata)
        for package in packages:
            self.provider.register(package.manifest_path, metadata)
        return directory


@pytest.fixture
def provider() -> FakeMetadataProvider:
    return FakeMetadataProvider()


@pytest.fixture
def root(tmp_path: Path) -> Path:
    directory = tmp_path / "projects"
    directory.mkdir()
    return directory


@pytest.fixture
def tree(root: Path, provider: FakeMetadataProvider) -> CargoTree:
    return CargoTree(root, provider)
