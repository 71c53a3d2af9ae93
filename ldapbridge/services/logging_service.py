# -*- coding: utf-8 -*-
"""Logging Service Implementation.

Copyright 2025
SPDX-License-Identifier: Apache-2.0

Console and file logging for the bridge. Console output uses a text or JSON
formatter depending on ``settings.log_format``; the optional rotating file
handler always writes JSON.
"""

# Standard
import logging
from logging.handlers import RotatingFileHandler
import os
from typing import Dict, Optional

# Third-Party
from pythonjsonlogger import jsonlogger

# First-Party
from ldapbridge.config import settings

# Create a text formatter
text_formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

# Create a JSON formatter
json_formatter = jsonlogger.JsonFormatter("%(asctime)s %(name)s %(levelname)s %(message)s")

# Global handlers will be created lazily
_file_handler: Optional[RotatingFileHandler] = None
_console_handler: Optional[logging.StreamHandler] = None


def _get_file_handler() -> RotatingFileHandler:
    """Get or create the file handler.

    Returns:
        RotatingFileHandler: The file handler for JSON logging.

    Raises:
        ValueError: If file logging is disabled or no log file specified.
    """
    global _file_handler  # pylint: disable=global-statement
    if _file_handler is None:
        if not settings.log_to_file or not settings.log_file:
            raise ValueError("File logging is disabled or no log file specified")

        if settings.log_folder:
            os.makedirs(settings.log_folder, exist_ok=True)
            log_path = os.path.join(settings.log_folder, settings.log_file)
        else:
            log_path = settings.log_file

        _file_handler = RotatingFileHandler(log_path, maxBytes=1024 * 1024, backupCount=5)
        _file_handler.setFormatter(json_formatter)
    return _file_handler


def _get_console_handler() -> logging.StreamHandler:
    """Get or create the console handler.

    Returns:
        logging.StreamHandler: The stream handler for console logging.
    """
    global _console_handler  # pylint: disable=global-statement
    if _console_handler is None:
        _console_handler = logging.StreamHandler()
        _console_handler.setFormatter(json_formatter if settings.log_format == "json" else text_formatter)
    return _console_handler


class LoggingService:
    """Hands out configured loggers and keeps their level in sync.

    Examples:
        >>> service = LoggingService()
        >>> service.level
        'INFO'
    """

    def __init__(self, level: Optional[str] = None):
        """Initialize logging service.

        Args:
            level: Initial level name; defaults to ``settings.log_level``.
        """
        self._level = (level or settings.log_level).upper()
        self._loggers: Dict[str, logging.Logger] = {}

    @property
    def level(self) -> str:
        """Current level name.

        Returns:
            str: Level name such as ``INFO``.
        """
        return self._level

    def get_logger(self, name: str) -> logging.Logger:
        """Get or create logger instance.

        Args:
            name: Logger name

        Returns:
            Logger instance

        Examples:
            >>> service = LoggingService()
            >>> logger = service.get_logger('ldapbridge.test')
            >>> import logging
            >>> isinstance(logger, logging.Logger)
            True
        """
        if name not in self._loggers:
            logger = logging.getLogger(name)

            if _get_console_handler() not in logger.handlers:
                logger.addHandler(_get_console_handler())

            if settings.log_to_file and settings.log_file:
                try:
                    handler = _get_file_handler()
                    if handler not in logger.handlers:
                        logger.addHandler(handler)
                except Exception as e:
                    logging.getLogger(__name__).warning(f"Failed to add file handler to logger {name}: {e}")

            logger.setLevel(getattr(logging, self._level))

            self._loggers[name] = logger

        return self._loggers[name]

    def set_level(self, level: str) -> None:
        """Set minimum log level on every logger handed out so far.

        Args:
            level: New level name.

        Raises:
            ValueError: If the level name is unknown.

        Examples:
            >>> service = LoggingService()
            >>> logger = service.get_logger('ldapbridge.level')
            >>> service.set_level('debug')
            >>> logger.level == logging.DEBUG
            True
        """
        level = level.upper()
        if not isinstance(getattr(logging, level, None), int):
            raise ValueError(f"Unknown log level: {level}")
        self._level = level
        for logger in self._loggers.values():
            logger.setLevel(getattr(logging, level))
