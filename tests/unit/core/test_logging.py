"""
Unit Tests for Centralized Logging.

Tests the logging configuration and handler setup.
"""

import logging
from unittest.mock import patch

import pytest

from crm_erp.core import logging as logging_module


def _config(file_enabled: bool = False) -> dict:
    return {
        "level": "INFO",
        "format": "json",
        "handlers": {
            "console": {"enabled": True},
            "file": {
                "enabled": file_enabled,
                "path": "logs/system.jsonl",
                "max_bytes": 1048576,
                "backup_count": 1,
            },
        },
    }


@pytest.fixture(autouse=True)
def _reset_logging():
    """Restore root handlers and the cached config after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    logging_module._logging_config = None
    yield
    logging_module._logging_config = None
    root.handlers[:] = handlers
    root.setLevel(level)


class TestValidSources:
    def test_contains_event_worker_source(self):
        assert {"web", "events", "cli"} <= logging_module.VALID_SOURCES
        assert isinstance(logging_module.VALID_SOURCES, frozenset)


class TestLoggingConfigLoading:
    def test_config_is_loaded_once(self):
        with patch("crm_erp.core.logging.load_yaml_config", return_value=_config()) as mock_load:
            logging_module._load_logging_config()
            logging_module._load_logging_config()

        mock_load.assert_called_once_with("logging.yaml")


class TestSetupLogging:
    def test_level_override(self):
        with patch("crm_erp.core.logging.load_yaml_config", return_value=_config()):
            logging_module.setup_logging(level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_console_only(self):
        with patch("crm_erp.core.logging.load_yaml_config", return_value=_config()):
            logging_module.setup_logging()

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)

    def test_file_handler_writes_under_project_root(self, tmp_path):
        with patch("crm_erp.core.logging.load_yaml_config", return_value=_config(file_enabled=True)), \
             patch("crm_erp.core.logging.find_project_root", return_value=tmp_path):
            logging_module.setup_logging(enable_console=False)

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert handlers[0].baseFilename == str(tmp_path / "logs" / "system.jsonl")
        handlers[0].close()

    def test_get_logger_accepts_extra(self):
        with patch("crm_erp.core.logging.load_yaml_config", return_value=_config()):
            logging_module.setup_logging(enable_console=False)

        logging_module.get_logger(__name__).info("hello", extra={"key": "value"})

    def test_invalid_format_is_rejected(self):
        config = _config()
        config["format"] = "xml"

        with patch("crm_erp.core.logging.load_yaml_config", return_value=config):
            with pytest.raises(ValueError):
                logging_module.setup_logging()


class TestLiftExtra:
    def test_extra_fields_move_to_top_level(self):
        event_dict = {"event": "Event published", "extra": {"event_id": "evt-1", "stream": "s"}}

        result = logging_module.lift_extra(None, "info", event_dict)

        assert result == {"event": "Event published", "event_id": "evt-1", "stream": "s"}

    def test_bound_context_is_not_overwritten(self):
        event_dict = {"event": "x", "message_id": "1-0", "extra": {"message_id": "other"}}

        result = logging_module.lift_extra(None, "info", event_dict)

        assert result["message_id"] == "1-0"

    def test_record_without_extra_is_unchanged(self):
        assert logging_module.lift_extra(None, "info", {"event": "x"}) == {"event": "x"}
