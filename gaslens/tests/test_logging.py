"""Tests for gaslens.core.logging — formatters and session tagging."""

from __future__ import annotations

import json
import logging

from gaslens.core.logging import DevFormatter, JSONFormatter, SessionLogFilter, setup_logging


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("gaslens.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:

    def test_json_formatter(self):
        data = json.loads(JSONFormatter().format(_record(session_id="abc", hotspot_count=3, duration_ms=1.5)))
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["session_id"] == "abc"
        assert data["hotspot_count"] == 3
        assert data["duration_ms"] == 1.5

    def test_dev_formatter_prefixes_session(self):
        text = DevFormatter().format(_record(session_id="0123456789"))
        assert "[01234567]" in text
        assert "hello" in text


class TestSetup:

    def test_production_uses_json(self):
        setup_logging("production", "DEBUG")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.level == logging.DEBUG
        setup_logging("development", "INFO")

    def test_session_filter_tags_records(self):
        record = _record()
        assert SessionLogFilter("s-1").filter(record) is True
        assert record.session_id == "s-1"
