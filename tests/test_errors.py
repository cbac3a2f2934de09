"""Tests for ErrorReport collection and the JSONL log sink."""

import json

from loguru import logger

from rust_workspace_configurator.errors import Error, ErrorReport, ErrorType, Result
from rust_workspace_configurator.logging_config import json_sink


class TestErrorReport:
    def test_collect_result(self) -> None:
        report = ErrorReport()
        assert report.collect_result(Result.ok(1))
        assert not report.collect_result(Result.err(Error(ErrorType.IO_ERROR, "boom")))
        assert report.has_errors()

    def test_summary_lines_errors_first(self) -> None:
        report = ErrorReport()
        report.add_warning(Error(ErrorType.MALFORMED_EXISTING_DESCRIPTOR, "bad file"))
        report.add_error(Error(ErrorType.METADATA_RETRIEVAL_FAILED, "no metadata {for} you"))
        assert report.summary_lines() == ["error: no metadata {for} you", "warning: bad file"]

    def test_errors_of(self) -> None:
        report = ErrorReport()
        report.add_error(Error(ErrorType.METADATA_RETRIEVAL_FAILED, "a"))
        report.add_error(Error(ErrorType.IO_ERROR, "b"))
        assert [e.message for e in report.errors_of(ErrorType.IO_ERROR)] == ["b"]


class TestJsonSink:
    def test_record_shape(self, capsys) -> None:
        handler_id = logger.add(json_sink, level="INFO")
        try:
            logger.info("Hello", operation="test_op", status="ok", metrics={"n": 1}, extra_key="v")
        finally:
            logger.remove(handler_id)

        lines = [line for line in capsys.readouterr().err.splitlines() if line.startswith("{")]
        entry = json.loads(lines[-1])
        assert entry["message"] == "Hello"
        assert entry["operation"] == "test_op"
        assert entry["operation_status"] == "ok"
        assert entry["metrics"] == {"n": 1}
        assert entry["context"] == {"extra_key": "v"}
