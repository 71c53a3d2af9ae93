# -*- coding: utf-8 -*-
"""Unit tests for LoggingService."""

# Standard
import logging
from unittest.mock import patch

# Third-Party
import pytest

# First-Party
from ldapbridge.services import logging_service as logging_mod
from ldapbridge.services.logging_service import LoggingService


class TestLoggingService:
    def test_default_level_from_settings(self):
        with patch.object(logging_mod.settings, "log_level", "WARNING"):
            assert LoggingService().level == "WARNING"

    def test_get_logger_is_cached(self):
        service = LoggingService("info")
        assert service.get_logger("ldapbridge.tests.cached") is service.get_logger("ldapbridge.tests.cached")

    def test_console_handler_added_once(self):
        first = LoggingService().get_logger("ldapbridge.tests.handlers")
        second = LoggingService().get_logger("ldapbridge.tests.handlers")

        console = [h for h in second.handlers if h is logging_mod._get_console_handler()]
        assert first is second
        assert len(console) == 1

    def test_set_level_updates_loggers(self):
        service = LoggingService("info")
        logger = service.get_logger("ldapbridge.tests.level")

        service.set_level("debug")

        assert service.level == "DEBUG"
        assert logger.level == logging.DEBUG

    def test_set_unknown_level_rejected(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            LoggingService().set_level("verbose")

    def test_file_handler_requires_configuration(self):
        with patch.object(logging_mod, "_file_handler", None), patch.object(logging_mod.settings, "log_to_file", False):
            with pytest.raises(ValueError, match="File logging is disabled"):
                logging_mod._get_file_handler()

    def test_file_handler_writes_json(self, tmp_path):
        with (
            patch.object(logging_mod, "_file_handler", None),
            patch.object(logging_mod.settings, "log_to_file", True),
            patch.object(logging_mod.settings, "log_file", "bridge.log"),
            patch.object(logging_mod.settings, "log_folder", str(tmp_path / "logs")),
        ):
            handler = logging_mod._get_file_handler()
            try:
                assert handler.formatter is logging_mod.json_formatter
                assert handler.baseFilename == str(tmp_path / "logs" / "bridge.log")
            finally:
                handler.close()
