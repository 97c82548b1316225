"""
Generic Logging Functionality

This module provides a class for setting up and accessing the application
logger with consistent formatting and support for both console and file output.
"""

import logging
import os
import sys
from datetime import datetime
from typing import Optional, Union


class LoggingManager:
    """
    Configures a named logger and hands out child loggers for application modules.
    """

    APP_LOGGER_NAME = "app"
    DEFAULT_LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)8s | %(message)s"
    DEFAULT_LOG_LEVEL = logging.INFO

    def __init__(self,
                 logger_name: str = APP_LOGGER_NAME,
                 log_level: Union[int, str] = DEFAULT_LOG_LEVEL,
                 log_format: str = DEFAULT_LOG_FORMAT,
                 log_file: Optional[str] = None,
                 console_output: bool = True,
                 propagate: bool = False):
        """
        Initializes and configures a specific logger instance.

        Args:
            logger_name (str): The name for the logger to be configured.
            log_level (Union[int, str], optional): The logging level, e.g. ``"DEBUG"``.
            log_format (str, optional): The format string for log messages.
            log_file (Optional[str], optional): Path to a file for log output.
            console_output (bool, optional): Whether to output logs to stdout.
            propagate (bool, optional): Whether records are passed to ancestor loggers.
        """
        self.logger_name = logger_name
        self.log_level = log_level.upper() if isinstance(log_level, str) else log_level
        self.log_format_str = log_format
        self.log_file = log_file
        self.console_output = console_output
        self.propagate = propagate

        self._configured_logger = logging.getLogger(self.logger_name)
        self._configured_logger.setLevel(self.log_level)
        self._configured_logger.propagate = self.propagate

        # Reconfiguring the same logger name must not duplicate output.
        if self._configured_logger.hasHandlers():
            self._configured_logger.handlers.clear()

        self._formatter = logging.Formatter(self.log_format_str)
        self._configure_handlers()

    def _configure_handlers(self) -> None:
        """Attach the console and/or file handlers to the managed logger."""
        if self.console_output:
            console_handler = logging.StreamHandler(stream=sys.stdout)
            console_handler.setFormatter(self._formatter)
            self._configured_logger.addHandler(console_handler)

        if self.log_file:
            try:
                file_handler = logging.FileHandler(self.log_file, mode='a')
            except OSError as e:
                self._configured_logger.warning(
                    f"Could not set up logging to file {self.log_file}: {e}")
                return
            file_handler.setFormatter(self._formatter)
            self._configured_logger.addHandler(file_handler)
            self._configured_logger.debug(f"Logging to file: {self.log_file}")

    @classmethod
    def for_application(cls,
                        log_level: Union[int, str] = DEFAULT_LOG_LEVEL,
                        log_dir: Optional[str] = None,
                        file_prefix: str = "repotracker",
                        console_output: bool = True) -> "LoggingManager":
        """
        Configures the main ``app`` logger, writing to a timestamped file
        under ``log_dir`` when one is given.
        """
        log_file = None
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            log_file = os.path.join(log_dir, f"{file_prefix}_{timestamp}.log")
        return cls(
            logger_name=cls.APP_LOGGER_NAME,
            log_level=log_level,
            log_file=log_file,
            console_output=console_output,
            propagate=False,
        )

    def get_configured_logger(self) -> logging.Logger:
        """Returns the logger instance that this manager configured."""
        return self._configured_logger

    @staticmethod
    def get_logger(name: str) -> logging.Logger:
        """
        Retrieves a logger instance by its name.

        Child loggers such as ``app.github_client`` propagate their records to
        the ``app`` logger configured by a LoggingManager instance, so modules
        can grab a logger at import time before logging is set up.

        Args:
            name (str): The name of the logger to retrieve (e.g., "app.module").

        Returns:
            logging.Logger: The logger instance.
        """
        return logging.getLogger(name)
