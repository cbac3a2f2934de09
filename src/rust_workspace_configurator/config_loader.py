# =============================================================================
# Configuration Loading
# =============================================================================

import re
import time
import tomllib
from pathlib import Path

import platformdirs
from loguru import logger

from .errors import Error, ErrorType, Result
from .logging_config import APP_NAME

CONFIG_DIR = Path(platformdirs.user_config_dir(appname=APP_NAME))
CONFIG_PATH = CONFIG_DIR / "config.toml"

# Default configuration - used as-is when no config file exists
DEFAULT_CONFIG = {
    "scan": {
        "skip_dirs": [],  # Extra directory names to skip, on top of SKIP_DIRS
    },
    "cargo": {
        "command": "cargo",
        "timeout_seconds": 120,
    },
    "metadata": {
        "jobs": 1,  # >1 runs cargo metadata queries on a thread pool
    },
    "output": {
        "backup_suffix": ".backup",
    },
}


def extract_toml_error_context(error: tomllib.TOMLDecodeError, file_path: Path) -> dict:
    """Locate the offending line of a TOML parse error for the user-facing message."""
    raw = str(error)
    # tomllib reports positions as "(at line N, column M)"
    match = re.search(r"line\s+(\d+)", raw, re.IGNORECASE)
    line_number = int(match.group(1)) if match else None

    line_content = None
    if line_number:
        try:
            lines = file_path.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError:
            lines = []
        if line_number <= len(lines):
            line_content = lines[line_number - 1].rstrip()

    if line_number is None:
        formatted = f"TOML parse error in {file_path.name}: {raw}"
    elif line_content:
        shown = line_content if len(line_content) <= 50 else line_content[:50] + "..."
        formatted = f"{file_path.name} line {line_number}: {shown}\n\nDetails: {raw}"
    else:
        formatted = f"{file_path.name} line {line_number}: {raw}"

    return {
        "line_number": line_number,
        "line_content": line_content,
        "formatted_message": formatted,
    }


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dictionary."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def validate_config(config: dict) -> list[str]:
    """Return a list of problems with a merged config; empty when valid."""
    problems = []

    skip_dirs = config["scan"].get("skip_dirs")
    if not isinstance(skip_dirs, list) or not all(isinstance(d, str) for d in skip_dirs):
        problems.append("scan.skip_dirs must be a list of directory names")

    command = config["cargo"].get("command")
    if not isinstance(command, str) or not command.strip():
        problems.append("cargo.command must be a non-empty string")

    timeout = config["cargo"].get("timeout_seconds")
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        problems.append("cargo.timeout_seconds must be a positive number")

    jobs = config["metadata"].get("jobs")
    if isinstance(jobs, bool) or not isinstance(jobs, int) or jobs < 1:
        problems.append("metadata.jobs must be an integer >= 1")

    suffix = config["output"].get("backup_suffix")
    if not isinstance(suffix, str) or not suffix or "/" in suffix:
        problems.append("output.backup_suffix must be a non-empty file name suffix")

    return problems


def load_config(config_path: Path | None = None) -> Result[dict]:
    """
    Load configuration from a TOML file with defaults fallback.

    Without an explicit path the per-user config file is used if present;
    its absence is not an error. An explicit path that does not exist is.

    Args:
        config_path: Path to a config TOML file, or None for the default

    Returns:
        Result[dict]: Ok with merged config, or Err with error details
    """
    start_time = time.perf_counter()
    explicit = config_path is not None
    config_path = config_path if explicit else CONFIG_PATH

    logger.debug(
        "Loading config",
        operation="load_config",
        status="started",
        config_path=str(config_path),
        explicit=explicit
    )

    if not config_path.exists():
        if not explicit:
            logger.debug(
                "Config file does not exist, using defaults",
                operation="load_config",
                status="default",
                config_path=str(config_path)
            )
            return Result.ok(deep_merge(DEFAULT_CONFIG, {}))

        return Result.err(Error(
            error_type=ErrorType.FILE_NOT_FOUND,
            message=f"Config file not found: {config_path}",
            context={"config_path": str(config_path)}
        ))

    try:
        with open(config_path, "rb") as f:
            user_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        error_context = extract_toml_error_context(e, config_path)
        logger.error(
            "Invalid TOML syntax in configuration file",
            operation="load_config",
            status="failed",
            file=str(config_path),
            line_number=error_context["line_number"],
            line_content=error_context["line_content"]
        )
        return Result.err(Error(
            error_type=ErrorType.PARSE_ERROR,
            message=error_context["formatted_message"],
            context={"config_path": str(config_path), "line_number": error_context["line_number"]},
            original_exception=e
        ))
    except OSError as e:
        return Result.err(Error(
            error_type=ErrorType.IO_ERROR,
            message=f"Cannot read config file {config_path}: {e}",
            context={"config_path": str(config_path)},
            original_exception=e
        ))

    merged = deep_merge(DEFAULT_CONFIG, user_config)
    problems = validate_config(merged)
    if problems:
        return Result.err(Error(
            error_type=ErrorType.VALIDATION_ERROR,
            message=f"Invalid configuration in {config_path}: " + "; ".join(problems),
            context={"config_path": str(config_path), "problems": problems}
        ))

    duration_ms = int((time.perf_counter() - start_time) * 1000)
    logger.debug(
        "Config loaded successfully",
        operation="load_config",
        status="success",
        config_path=str(config_path),
        metrics={"duration_ms": duration_ms}
    )

    return Result.ok(merged)
