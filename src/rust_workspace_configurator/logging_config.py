# =============================================================================
# Structured Logging Setup (JSONL format)
# =============================================================================

import json
import sys
import traceback
from contextvars import ContextVar
from pathlib import Path

import platformdirs
from loguru import logger

APP_NAME = "rust-workspace-configurator"

# Correlation ID for a single generator run
trace_id_var: ContextVar[str] = ContextVar('trace_id', default=None)


# Keys promoted to top-level fields; everything else bound on the record is context
RESERVED_KEYS = ("operation", "status", "trace_id", "metrics")


def _exception_payload(exception) -> dict | None:
    if not exception:
        return None
    exc_type, exc_value, exc_tb = exception
    return {
        "type": exc_type.__name__ if exc_type else "Unknown",
        "message": str(exc_value) if exc_value else "Unknown error",
        "traceback_lines": traceback.format_tb(exc_tb) if exc_tb else [],
    }


def json_sink(message):
    """One JSON object per line on stderr."""
    record = message.record
    extra = record["extra"]
    entry = {
        "timestamp": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
        "level": record["level"].name.lower(),
        "component": record["function"],
        "operation": extra.get("operation", "unknown"),
        "operation_status": extra.get("status"),
        "trace_id": extra.get("trace_id") or trace_id_var.get(),
        "message": record["message"],
        "context": {k: v for k, v in extra.items() if k not in RESERVED_KEYS},
        "metrics": extra.get("metrics", {}),
        "error": _exception_payload(record["exception"]),
    }
    # Paths in the context are not JSON-native
    sys.stderr.write(json.dumps(entry, default=str) + "\n")


def setup_logger(level: str = "WARNING", log_file: bool = True):
    """
    Configure Loguru for machine-readable JSONL output.

    Args:
        level: Minimum level for the stderr sink
        log_file: Also write a rotated DEBUG-level log under the user log dir

    Returns:
        The configured loguru logger
    """
    logger.remove()

    logger.add(
        json_sink,
        level=level
    )

    if log_file:
        # Linux: ~/.local/state/rust-workspace-configurator/log/
        # macOS: ~/Library/Logs/rust-workspace-configurator/
        log_dir = Path(platformdirs.user_log_dir(
            appname=APP_NAME,
            ensure_exists=True
        ))

        logger.add(
            str(log_dir / "configurator.jsonl"),
            format="{message}",
            serialize=True,
            rotation="10 MB",
            retention="7 days",
            compression="gz",
            level="DEBUG"
        )

    return logger
