import json
import logging

import pytest
import structlog

from absexporter.logging_config import CONSOLE_FORMAT, configure_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    try:
        yield
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)
        structlog.reset_defaults()


def test_json_format_uses_structlog_renderer(capsys):
    configure_logging("INFO", "json")

    formatter = logging.getLogger().handlers[0].formatter
    assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
    assert isinstance(formatter.processors[-1], structlog.processors.JSONRenderer)

    logging.getLogger("absexporter.scraper").info("Scrape succeeded")

    line = capsys.readouterr().err.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["event"] == "Scrape succeeded"
    assert payload["level"] == "info"
    assert payload["logger"] == "absexporter.scraper"
    assert "timestamp" in payload


def test_console_format_uses_plain_formatter(capsys):
    configure_logging("DEBUG", "console")

    root = logging.getLogger()
    formatter = root.handlers[0].formatter
    assert not isinstance(formatter, structlog.stdlib.ProcessorFormatter)
    assert formatter._fmt == CONSOLE_FORMAT
    assert root.level == logging.DEBUG

    logging.getLogger("absexporter.scraper").info("Scrape succeeded")

    line = capsys.readouterr().err.strip().splitlines()[-1]
    assert line.endswith("- absexporter.scraper - INFO - Scrape succeeded")
