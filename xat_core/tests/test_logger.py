import json
import logging

from xat_core.infrastructure.logging import logger as logger_module


def _format(extra):
    record = logging.LogRecord("xat_core", logging.INFO, __file__, 1, "orchestrator.tool_complete", None, None)
    record.extra = extra
    formatter = logger_module.logger.handlers[0].formatter
    return json.loads(formatter.format(record))


def test_redaction_drops_content_fields(monkeypatch):
    monkeypatch.setattr(logger_module.settings, "log_redact_content", True)
    line = _format({"tool": "search_web", "args": {"query": "secret"}, "result": "x", "content": "hi"})
    assert line["tool"] == "search_web"
    assert not set(line) & logger_module.REDACTED_KEYS


def test_fields_kept_without_redaction(monkeypatch):
    monkeypatch.setattr(logger_module.settings, "log_redact_content", False)
    line = _format({"tool": "search_web", "args": {"query": "cats"}})
    assert line["args"] == {"query": "cats"}
    assert line["msg"] == "orchestrator.tool_complete"
