# =============================================================================
# Error Handling Types (Result + ErrorReport)
# =============================================================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from loguru import logger

T = TypeVar('T')


class ErrorType(Enum):
    MANIFEST_NOT_FOUND = "manifest_not_found"
    METADATA_RETRIEVAL_FAILED = "metadata_retrieval_failed"
    MALFORMED_EXISTING_DESCRIPTOR = "malformed_existing_descriptor"
    IO_ERROR = "io_error"
    PARSE_ERROR = "parse_error"
    NO_RUNNABLES = "no_runnables"
    FILE_NOT_FOUND = "file_not_found"
    VALIDATION_ERROR = "validation_error"


@dataclass
class Error:
    """A failure as data, carried by a Result or collected in an ErrorReport."""

    error_type: ErrorType
    message: str
    context: dict = field(default_factory=dict)
    original_exception: Exception | None = None


@dataclass
class Result(Generic[T]):
    """Either ``value`` (success) or ``error``; stages return these instead of raising."""

    success: bool
    value: T | None = None
    error: Error | None = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(success=True, value=value)

    @classmethod
    def err(cls, error: Error) -> "Result[T]":
        return cls(success=False, error=error)

    def is_ok(self) -> bool:
        return self.success

    def is_err(self) -> bool:
        return not self.success


@dataclass
class ErrorReport:
    """Per-run collection of recoverable failures.

    Errors are project-level failures (the project is skipped); warnings are
    conditions that do not fail the run.
    """

    errors: list[Error] = field(default_factory=list)
    warnings: list[Error] = field(default_factory=list)

    def add_error(self, error: Error):
        self.errors.append(error)
        # Messages can contain literal braces (cargo stderr) and must not be formatted
        logger.bind(
            operation="error_report",
            status="error",
            error_type=error.error_type.value,
            **error.context
        ).error(error.message)

    def add_warning(self, error: Error):
        self.warnings.append(error)
        logger.bind(
            operation="error_report",
            status="warning",
            error_type=error.error_type.value,
            **error.context
        ).warning(error.message)

    def collect_result(self, result: Result) -> bool:
        """Collect error from Result into report if failed."""
        if result.is_err():
            self.add_error(result.error)
            return False
        return True

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def errors_of(self, error_type: ErrorType) -> list[Error]:
        return [e for e in self.errors if e.error_type is error_type]

    def summary_lines(self) -> list[str]:
        """Human-readable one-line-per-problem summary, errors first."""
        lines = [f"error: {e.message}" for e in self.errors]
        lines.extend(f"warning: {w.message}" for w in self.warnings)
        return lines

    def log_summary(self, op_trace_id: str):
        logger.info(
            "Run complete",
            operation="error_report",
            status="complete",
            trace_id=op_trace_id,
            metrics={
                "total_errors": len(self.errors),
                "total_warnings": len(self.warnings)
            }
        )
