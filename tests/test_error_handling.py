"""
Tests for the error hierarchy and the command error decorator.
"""

import logging

from execman.exceptions import ChecksumMismatchError, ExecmanError, NotFoundError, PipelineError
from execman.utils.error_handling import ErrorHandler, handle_errors


class TestErrors:

    def test_to_dict(self):
        error = NotFoundError("Repository acme/tool not found", {"owner": "acme"}, status_code=404)
        data = error.to_dict()
        assert data["code"] == "E404"
        assert data["type"] == "NotFoundError"
        assert data["context"]["owner"] == "acme"
        assert data["context"]["status_code"] == 404

    def test_pipeline_error_wraps_stage_and_cause(self):
        cause = ChecksumMismatchError("tool.tar.gz", "sha256:" + "a" * 64, "sha256:" + "b" * 64)

        error = PipelineError("tool", "Verifying", cause)

        assert str(error).startswith("tool: verifying failed: ")
        assert error.code == cause.code
        assert error.context["stage"] == "Verifying"
        assert error.context["asset"] == "tool.tar.gz"


class TestHandleErrors:

    def test_returns_default_and_reports(self):
        reported = []

        @handle_errors(default_return=7, reporter=reported.append)
        def command():
            raise ExecmanError("boom")

        assert command() == 7
        assert [str(e) for e in reported] == ["boom"]

    def test_passes_through_result(self):
        @handle_errors()
        def command():
            return 0

        assert command() == 0


class TestErrorHandler:

    def test_log_file_receives_debug(self, tmp_path):
        log_file = tmp_path / "logs" / "execman.log"
        root = logging.getLogger()
        saved = root.handlers[:], root.level
        try:
            ErrorHandler(verbose=False, log_file=log_file)
            logging.getLogger("execman.test").debug("detailed message")
            for handler in root.handlers:
                handler.flush()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved[0]
            root.setLevel(saved[1])

        assert "detailed message" in log_file.read_text(encoding="utf-8")
