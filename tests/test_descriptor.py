"""Tests for workspace descriptor synthesis."""

import json
from pathlib import Path

from rust_workspace_configurator.aggregator import LaunchConfig
from rust_workspace_configurator.descriptor import (
    build_descriptor,
    workspace_filename,
    workspace_name,
)
from rust_workspace_configurator.manifest_locator import Project, ProjectKind

ROOT = Path("/work/projects")


def _project(relative: str, index: int) -> Project:
    return Project(path=ROOT / relative, kind=ProjectKind.PACKAGE, index=index)


class TestFolders:
    def test_single_project_at_root_is_dot(self) -> None:
        descriptor = build_descriptor([_project(".", 0)], [], ROOT)
        assert descriptor.to_dict()["folders"] == [{"path": "."}]

    def test_multiple_projects_in_discovery_order(self) -> None:
        projects = [_project("zeta", 0), _project("alpha/inner", 1)]
        descriptor = build_descriptor(projects, [], ROOT)
        assert descriptor.to_dict()["folders"] == [
            {"path": "./zeta"},
            {"path": "./alpha/inner"},
        ]


class TestDocument:
    def test_shape(self) -> None:
        config = LaunchConfig(
            name="Debug binary 'app'",
            cwd="${workspaceFolder}",
            env={"BEVY_ASSET_ROOT": "${workspaceFolder}"},
            cargo_args=("run", "--bin=app", "--package=demo"),
        )
        document = json.loads(build_descriptor([_project(".", 0)], [config], ROOT).to_json())

        assert list(document) == ["folders", "name", "launch"]
        assert document["name"] == "projects (Rust)"
        assert document["launch"]["version"] == "0.2.0"
        assert document["launch"]["configurations"][0]["type"] == "lldb"
        assert document["launch"]["configurations"][0]["request"] == "launch"
        assert document["launch"]["configurations"][0]["args"] == []

    def test_json_is_stable(self) -> None:
        projects = [_project("a", 0), _project("b", 1)]
        first = build_descriptor(projects, [], ROOT).to_json()
        second = build_descriptor(projects, [], ROOT).to_json()
        assert first == second
        assert first.endswith("}\n")


class TestNaming:
    def test_filename_uses_root_name(self) -> None:
        assert workspace_filename(ROOT) == "projects.code-workspace"

    def test_filename_fallback_for_filesystem_root(self) -> None:
        assert workspace_filename(Path("/")) == "rust-projects.code-workspace"

    def test_friendly_name(self) -> None:
        assert workspace_name(ROOT, 1) == "projects (Rust)"
        assert workspace_name(ROOT, 3) == "projects (3 Rust Projects)"
