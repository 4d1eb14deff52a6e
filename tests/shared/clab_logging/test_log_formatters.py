"""Tests for clab_logging formatters module."""

import json
import logging
import sys

from clab_logging import ConsoleFormatter, JsonFormatter


def make_record(msg="Analyzing item", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord("clab.deep-dive", level, "/src/orchestrator.py", 42, msg, None, exc_info, func="run")
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_basic_fields(self):
        """Test the core fields of every entry."""
        entry = json.loads(JsonFormatter(service="deep-dive").format(make_record()))

        assert entry["severity"] == "INFO"
        assert entry["message"] == "Analyzing item"
        assert entry["service"] == "deep-dive"
        assert entry["logger"] == "clab.deep-dive"
        assert entry["timestamp"].endswith("Z")
        assert "sourceLocation" not in entry

    def test_context_and_extra_separated(self):
        """Test context fields and call fields land in separate sections."""
        record = make_record(run_id="run1", agent_id="architect", path="a/b.txt", confidence=80)

        entry = json.loads(JsonFormatter().format(record))

        assert entry["context"] == {"run_id": "run1", "agent_id": "architect"}
        assert entry["extra"] == {"path": "a/b.txt", "confidence": 80}

    def test_component(self):
        entry = json.loads(JsonFormatter(component="http").format(make_record()))
        assert entry["component"] == "http"

    def test_warning_has_source_location(self):
        entry = json.loads(JsonFormatter().format(make_record(level=logging.WARNING)))

        assert entry["sourceLocation"] == {"file": "/src/orchestrator.py", "line": 42, "function": "run"}

    def test_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = make_record(level=logging.ERROR, exc_info=sys.exc_info())

        entry = json.loads(JsonFormatter().format(record))

        assert "ValueError: bad" in entry["exception"]

    def test_unserializable_extra(self):
        entry = json.loads(JsonFormatter().format(make_record(target=object())))
        assert entry["extra"]["target"].startswith("<object")


class TestConsoleFormatter:
    """Tests for ConsoleFormatter."""

    def test_plain_line(self):
        line = ConsoleFormatter(service="deep-dive", use_colors=False).format(make_record())

        assert "[INFO    ] deep-dive: Analyzing item" in line
        assert "\033[" not in line

    def test_context_and_extras(self):
        record = make_record(agent_id="architect", subject_path="a/b.txt", item_level="file")

        line = ConsoleFormatter(use_colors=False).format(record)

        assert "(agent=architect path=a/b.txt)" in line
        assert line.endswith("item_level=file")

    def test_hide_extras(self):
        line = ConsoleFormatter(use_colors=False, show_extra=False).format(make_record(confidence=80))
        assert "confidence" not in line

    def test_colors(self):
        line = ConsoleFormatter(use_colors=True).format(make_record(level=logging.ERROR))
        assert ConsoleFormatter.COLORS["ERROR"] in line

    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        assert ConsoleFormatter().use_colors is False
