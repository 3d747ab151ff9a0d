"""
Unit tests for core.logger module.

Tests:
- format_kv_pairs() quoting, escaping, and truncation
- Logger key=value and JSON output
- StructuredFormatter rendering of structured and plain records
- configure_logging() handler installation
"""

import json
import logging

import pytest

from nostrgather.core.logger import (
    Logger,
    StructuredFormatter,
    configure_logging,
    format_kv_pairs,
)


# =============================================================================
# format_kv_pairs() Tests
# =============================================================================


class TestFormatKvPairs:
    """Tests for format_kv_pairs()."""

    def test_empty(self) -> None:
        assert format_kv_pairs({}) == ""

    def test_simple_values(self) -> None:
        assert format_kv_pairs({"a": 1, "b": "x"}) == " a=1 b=x"

    def test_quotes_values_with_spaces(self) -> None:
        assert format_kv_pairs({"msg": "two words"}) == ' msg="two words"'

    def test_escapes_embedded_quotes(self) -> None:
        assert format_kv_pairs({"msg": 'say "hi"'}) == ' msg="say \\"hi\\""'

    def test_empty_value_quoted(self) -> None:
        assert format_kv_pairs({"k": ""}) == ' k=""'

    def test_truncation(self) -> None:
        out = format_kv_pairs({"k": "x" * 20}, max_value_length=5)
        assert out == ' k="xxxxx...<truncated 15 chars>"'

    def test_custom_prefix(self) -> None:
        assert format_kv_pairs({"a": 1}, prefix="") == "a=1"


# =============================================================================
# Logger Tests
# =============================================================================


class TestLogger:
    """Tests for the Logger wrapper."""

    def test_name_namespaced(self) -> None:
        assert Logger("query").name == "nostrgather.query"

    def test_kv_output(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("query")
        with caplog.at_level(logging.INFO, logger="nostrgather.query"):
            logger.info("fanout_completed", connected=3, failed=1)
        record = caplog.records[-1]
        assert record.getMessage() == "fanout_completed"
        kv = record.structured_kv  # type: ignore[attr-defined]
        assert kv == {"connected": "3", "failed": "1"}

    def test_kv_values_truncated(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("query", max_value_length=3)
        with caplog.at_level(logging.INFO, logger="nostrgather.query"):
            logger.info("event", value="abcdef")
        kv = caplog.records[-1].structured_kv  # type: ignore[attr-defined]
        assert kv["value"].startswith("abc")
        assert "truncated 3 chars" in kv["value"]

    def test_json_output(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("query", json_output=True)
        with caplog.at_level(logging.WARNING, logger="nostrgather.query"):
            logger.warning("endpoint_connect_failed", url="wss://r.example.com")
        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["level"] == "warning"
        assert payload["component"] == "nostrgather.query"
        assert payload["message"] == "endpoint_connect_failed"
        assert payload["url"] == "wss://r.example.com"

    def test_disabled_level_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("quiet")
        with caplog.at_level(logging.WARNING, logger="nostrgather.quiet"):
            logger.debug("hidden")
        assert not [r for r in caplog.records if r.name == "nostrgather.quiet"]

    def test_exception_attaches_traceback(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("query")
        with caplog.at_level(logging.ERROR, logger="nostrgather.query"):
            try:
                raise RuntimeError("boom")
            except RuntimeError:
                logger.exception("worker_unexpected_exception")
        assert caplog.records[-1].exc_info is not None


# =============================================================================
# StructuredFormatter Tests
# =============================================================================


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def _record(self, msg: str, **extra: object) -> logging.LogRecord:
        record = logging.LogRecord("nostrgather.x", logging.INFO, __file__, 1, msg, (), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_structured_record(self) -> None:
        record = self._record("session_opened", structured_kv={"relays": "3"})
        assert StructuredFormatter().format(record) == "info nostrgather.x session_opened relays=3"

    def test_plain_record(self) -> None:
        record = self._record("document_written path=/tmp/x")
        expected = "info nostrgather.x document_written path=/tmp/x"
        assert StructuredFormatter().format(record) == expected


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_installs_single_handler(self) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging("debug")
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
            assert root.level == logging.DEBUG
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
