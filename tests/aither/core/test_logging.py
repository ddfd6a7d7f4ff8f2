"""Tests for loguru configuration."""

import json

import pytest

from aither.core import logging as aither_logging
from aither.core.logging import configure_logging, get_logger, get_logger_for_unit


@pytest.fixture(autouse=True)
def restore_logging():
    """Reinstall the default handlers after each test."""
    yield
    configure_logging(force_reconfigure=True)


class TestGetLogger:
    """Tests for get_logger and get_logger_for_unit."""

    def test_cached_per_name(self):
        assert get_logger("aither.test") is get_logger("aither.test")

    def test_module_binding(self, log_capture):
        get_logger("aither.core.sample").info("hello")

        assert log_capture[-1]["extra"]["module"] == "aither.core.sample"

    def test_unit_binding(self, log_capture):
        get_logger_for_unit("LabRunner").warning("slow import")

        extra = log_capture[-1]["extra"]
        assert extra["unit"] == "LabRunner"
        assert extra["module"] == "aither.unit.LabRunner"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_same_settings_is_noop(self):
        configure_logging(level="DEBUG", format="console", force_reconfigure=True)
        handlers = list(aither_logging._handler_ids)

        configure_logging(level="DEBUG", format="console")

        assert aither_logging._handler_ids == handlers

    def test_reconfigure_replaces_handlers(self):
        configure_logging(level="INFO", format="console", force_reconfigure=True)
        before = list(aither_logging._handler_ids)

        configure_logging(level="ERROR", format="json")

        assert len(aither_logging._handler_ids) == 1
        assert aither_logging._handler_ids != before

    def test_level_filters_stderr(self, capsys):
        configure_logging(level="ERROR", format="console", force_reconfigure=True)

        get_logger("aither.test.level").info("quiet")
        get_logger("aither.test.level").error("loud")

        err = capsys.readouterr().err
        assert "quiet" not in err
        assert "loud" in err
        assert "aither.test.level" in err

    def test_json_file_output(self, tmp_path):
        log_file = tmp_path / "logs" / "aither.log"
        configure_logging(level="INFO", format="console", output_file=log_file)

        get_logger_for_unit("Logging").info("Imported {count} entries", count=3)
        configure_logging(force_reconfigure=True)

        record = json.loads(log_file.read_text().splitlines()[-1])["record"]
        assert record["message"] == "Imported 3 entries"
        assert record["extra"]["unit"] == "Logging"

    def test_capture_sinks_survive_reconfiguration(self, log_capture):
        configure_logging(level="WARNING", format="json", force_reconfigure=True)

        get_logger("aither.test.capture").info("still captured")

        assert any(log["message"] == "still captured" for log in log_capture)
