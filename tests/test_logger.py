from __future__ import annotations

import json
import logging

from adonai.logger import JsonFormatter, setup_logging


def test_json_formatter_fields():
    record = logging.LogRecord("adonai.chat", logging.ERROR, __file__, 1, "failed for %s", ("u1",), None)
    data = json.loads(JsonFormatter().format(record))
    assert data["level"] == "error"
    assert data["logger"] == "adonai.chat"
    assert data["message"] == "failed for u1"
    assert "exc" not in data


def test_setup_logging_accepts_level_names():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("debug")
        assert root.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.DEBUG

        setup_logging("nonsense")
        assert root.level == logging.INFO
        assert logging.getLogger("httpx").level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
