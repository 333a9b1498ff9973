"""Property-based tests for structured logging."""

import json
from contextlib import redirect_stdout
from io import StringIO

from hypothesis import given
from hypothesis import strategies as st

from cryptodash.utils.logger import StructuredLogger
from cryptodash.utils.trace_context import clear_trace, create_trace


def capture(emit) -> list[dict]:
    """Run ``emit`` and return the JSON entries it printed."""
    buffer = StringIO()
    with redirect_stdout(buffer):
        emit()
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line.strip()]


class TestLoggerJSONFormat:
    """Tests for JSON log format compliance."""

    @given(
        level=st.sampled_from(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
        message=st.text(min_size=1),
        context=st.dictionaries(
            st.text(min_size=1, max_size=20).filter(lambda x: x[0].isalpha()),
            st.one_of(st.text(), st.integers(), st.booleans()),
            max_size=5,
        ),
    )
    def test_log_entries_have_required_fields(self, level, message, context):
        """
        **Feature: market-cache, Property 9: Log entries have required fields**

        For any log entry written, the output SHALL be valid JSON containing
        timestamp, level, component and message fields.
        """
        logger = StructuredLogger("test_component", min_level="DEBUG")

        entries = capture(lambda: logger.log(level, message, context or None))

        assert len(entries) == 1
        entry = entries[0]
        assert entry["level"] == level
        assert entry["component"] == "test_component"
        assert entry["message"] == message
        assert entry["timestamp"].endswith("Z") and "T" in entry["timestamp"]
        if context:
            assert entry["context"] == context
        else:
            assert "context" not in entry

    def test_non_serializable_context_is_stringified(self):
        logger = StructuredLogger("test_component", min_level="DEBUG")

        entries = capture(lambda: logger.info("tuple key", context={"key": ("bitcoin", 7)}))

        assert entries[0]["context"]["key"] == ["bitcoin", 7]

    def test_trace_id_is_attached(self):
        logger = StructuredLogger("test_component", min_level="DEBUG")
        trace_id = create_trace()
        try:
            entries = capture(lambda: logger.warning("Upstream rate limit reached"))
        finally:
            clear_trace()

        assert entries[0]["trace_id"] == trace_id

    def test_no_trace_id_outside_a_trace(self):
        clear_trace()
        logger = StructuredLogger("test_component", min_level="DEBUG")

        entries = capture(lambda: logger.info("idle"))

        assert "trace_id" not in entries[0]


class TestLoggerLevels:
    """Tests for level filtering and exception details."""

    def test_entries_below_min_level_are_dropped(self):
        logger = StructuredLogger("test_component", min_level="WARNING")

        entries = capture(lambda: (logger.debug("d"), logger.info("i"), logger.warning("w")))

        assert [e["level"] for e in entries] == ["WARNING"]

    def test_unknown_level_is_written_as_info(self):
        logger = StructuredLogger("test_component", min_level="DEBUG")

        entries = capture(lambda: logger.log("verbose", "message"))

        assert entries[0]["level"] == "INFO"

    def test_error_includes_exception_details(self):
        logger = StructuredLogger("test_component", min_level="DEBUG")
        try:
            raise RuntimeError("snapshot write failed")
        except RuntimeError as e:
            error = e

        entries = capture(lambda: logger.error("Error saving snapshot to disk", exception=error))

        exception = entries[0]["exception"]
        assert exception["type"] == "RuntimeError"
        assert exception["message"] == "snapshot write failed"
        assert "Traceback" in exception["stack_trace"]

    def test_file_output(self, tmp_path):
        log_file = tmp_path / "logs" / "backend.log"
        logger = StructuredLogger("test_component", file_path=str(log_file), min_level="DEBUG")

        capture(lambda: logger.info("to file"))

        lines = log_file.read_text().splitlines()
        assert json.loads(lines[0])["message"] == "to file"
