"""Tests for structured logging setup."""

import json
import logging

import structlog

from koro.logging import setup_logging


class TestSetupLogging:
    def teardown_method(self):
        structlog.reset_defaults()
        logging.getLogger().handlers.clear()

    def test_json_output(self, capsys):
        setup_logging("DEBUG", "json")
        structlog.get_logger("koro.test").info("memory.core_written", document="state")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "memory.core_written"
        assert event["document"] == "state"
        assert event["level"] == "info"
        assert event["logger"] == "koro.test"

    def test_level_filters(self, capsys):
        setup_logging("WARNING", "json")
        structlog.get_logger("koro.test").info("quiet")
        assert "quiet" not in capsys.readouterr().err
