"""Tests for TOML configuration loading."""

from pathlib import Path

from rust_workspace_configurator import config_loader
from rust_workspace_configurator.config_loader import DEFAULT_CONFIG, deep_merge, load_config
from rust_workspace_configurator.errors import ErrorType


class TestDeepMerge:
    def test_nested_override(self) -> None:
        merged = deep_merge({"a": {"x": 1, "y": 2}, "b": 3}, {"a": {"y": 5}})
        assert merged == {"a": {"x": 1, "y": 5}, "b": 3}

    def test_base_is_not_mutated(self) -> None:
        base = {"a": {"x": 1}}
        deep_merge(base, {"a": {"x": 2}})
        assert base == {"a": {"x": 1}}


class TestLoadConfig:
    def test_missing_default_file_gives_defaults(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setattr(config_loader, "CONFIG_PATH", tmp_path / "nope.toml")
        result = load_config()

        assert result.is_ok()
        assert result.value == DEFAULT_CONFIG

    def test_missing_explicit_file_is_an_error(self, tmp_path: Path) -> None:
        result = load_config(tmp_path / "nope.toml")
        assert result.error.error_type is ErrorType.FILE_NOT_FOUND

    def test_overrides_are_merged(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text('[metadata]\njobs = 4\n\n[scan]\nskip_dirs = ["vendor"]\n')

        config = load_config(path).value

        assert config["metadata"]["jobs"] == 4
        assert config["scan"]["skip_dirs"] == ["vendor"]
        assert config["cargo"]["command"] == "cargo"

    def test_invalid_toml_reports_line(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text('[cargo]\ncommand = "cargo"\ntimeout_seconds = = 3\n')

        result = load_config(path)

        assert result.error.error_type is ErrorType.PARSE_ERROR
        assert result.error.context["line_number"] == 3
        assert "timeout_seconds = = 3" in result.error.message

    def test_invalid_values(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text('[metadata]\njobs = 0\n\n[output]\nbackup_suffix = ""\n')

        result = load_config(path)

        assert result.error.error_type is ErrorType.VALIDATION_ERROR
        assert "metadata.jobs" in result.error.message
        assert "output.backup_suffix" in result.error.message
