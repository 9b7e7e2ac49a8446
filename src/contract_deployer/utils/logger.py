#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Logging Configuration Module

Configures the deployer's logger hierarchy: console output, a per-run log
file and optional JSON formatting. Components receive a logger handle
explicitly and fall back to a module logger from get_logger().
"""

import os
import sys
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any, Union

# Default log levels
DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG

# Environment variable names
ENV_LOG_LEVEL = "LOG_LEVEL"
ENV_LOG_FILE_PATH = "LOG_FILE_PATH"

# Root of the package logger hierarchy
PACKAGE_LOGGER_NAME = "contract_deployer"

# Log level mapping
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Global logger registry to avoid duplicate handlers
_loggers: Dict[str, logging.Logger] = {}


def _parse_level(level: Optional[Union[int, str]], default: int) -> int:
    if level is None:
        return default
    if isinstance(level, str):
        return LOG_LEVELS.get(level.upper(), default)
    return level


class LoggerConfig:
    """Configuration class for logger settings."""

    def __init__(
        self,
        name: str = PACKAGE_LOGGER_NAME,
        console_level: Optional[Union[int, str]] = None,
        file_level: Optional[Union[int, str]] = None,
        log_file: Optional[str] = None,
        format_string: Optional[str] = None,
        json_logs: bool = False,
        propagate: bool = False,
        stream=None,
    ):
        """
        Initialize logger configuration.

        Args:
            name: Logger name
            console_level: Console logging level (int or string)
            file_level: File logging level (int or string)
            log_file: Path to log file (None for no file logging)
            format_string: Custom log format string
            json_logs: Whether to format logs as JSON
            propagate: Whether to propagate to parent loggers
            stream: Console stream (defaults to stdout)
        """
        self.name = name

        env_level = os.environ.get(ENV_LOG_LEVEL)
        env_level = _parse_level(env_level, DEFAULT_CONSOLE_LEVEL) if env_level else None

        self.console_level = _parse_level(
            console_level, env_level if env_level is not None else DEFAULT_CONSOLE_LEVEL
        )
        self.file_level = _parse_level(
            file_level, env_level if env_level is not None else DEFAULT_FILE_LEVEL
        )

        self.log_file = log_file or os.environ.get(ENV_LOG_FILE_PATH)

        if format_string:
            self.format_string = format_string
        else:
            self.format_string = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

        self.json_logs = json_logs
        self.propagate = propagate
        self.stream = stream


class JsonFormatter(logging.Formatter):
    """
    Formatter that outputs one JSON object per log record.

    Stage events logged through log_stage_event() carry their ``stage`` and
    ``event`` fields into the JSON object.
    """

    def __init__(
        self,
        fmt_dict: Optional[Dict[str, Any]] = None,
        time_format: str = "%Y-%m-%d %H:%M:%S",
    ):
        super().__init__()
        self.fmt_dict = fmt_dict or {
            "timestamp": "asctime",
            "level": "levelname",
            "name": "name",
            "stage": "stage",
            "event": "event",
            "message": "message",
        }
        self.time_format = time_format

    def format(self, record: logging.LogRecord) -> str:
        record.asctime = self.formatTime(record, self.time_format)
        record.message = record.getMessage()

        log_record = {}
        for key, value in self.fmt_dict.items():
            if hasattr(record, value):
                log_record[key] = getattr(record, value)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


def configure_logger(config: Optional[LoggerConfig] = None) -> logging.Logger:
    """
    Configure a logger with the specified settings.

    Reconfiguring an existing logger replaces its handlers.

    Args:
        config: Logger configuration (or None for default)

    Returns:
        Configured logger
    """
    if config is None:
        config = LoggerConfig()

    logger = logging.getLogger(config.name)
    logger.setLevel(min(config.console_level, config.file_level))
    logger.propagate = config.propagate

    # Clear existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    if config.json_logs:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(config.format_string)

    console_handler = logging.StreamHandler(config.stream or sys.stdout)
    console_handler.setLevel(config.console_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if config.log_file:
        os.makedirs(os.path.dirname(os.path.abspath(config.log_file)), exist_ok=True)
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setLevel(config.file_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    _loggers[config.name] = logger
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger by name.

    Module loggers inside the package propagate to the package logger, which
    owns the handlers.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    if name not in _loggers:
        _loggers[name] = logging.getLogger(name)
    return _loggers[name]


def run_log_path(log_dir: Path, started_at: Optional[datetime] = None) -> Path:
    """
    Path of the log file for a single deployment run.

    Args:
        log_dir: Base log directory
        started_at: Run start time (defaults to now)

    Returns:
        Path like ``<log_dir>/deploy/<ISO timestamp>.log``
    """
    started_at = started_at or datetime.now(timezone.utc)
    # Colons are not portable in file names
    stamp = started_at.strftime("%Y-%m-%dT%H-%M-%S.%fZ")
    return Path(log_dir) / "deploy" / f"{stamp}.log"


def configure_run_logging(
    log_path: Path,
    level: Union[int, str] = logging.INFO,
    json_logs: bool = False,
    stream=None,
) -> logging.Logger:
    """
    Configure the package logger for a deployment run.

    Args:
        log_path: Run log file, usually from run_log_path()
        level: Console logging level
        json_logs: Whether to format logs as JSON
        stream: Console stream (defaults to stdout)

    Returns:
        The configured package logger
    """
    return configure_logger(LoggerConfig(
        name=PACKAGE_LOGGER_NAME,
        console_level=level,
        file_level=logging.DEBUG,
        log_file=str(log_path),
        json_logs=json_logs,
        stream=stream,
    ))


def log_stage_event(
    logger: logging.Logger,
    stage: str,
    event_type: str,
    message: str,
    level: int = logging.INFO,
) -> None:
    """
    Log a pipeline progress event.

    Args:
        logger: Logger to use
        stage: Pipeline stage name
        event_type: Type of event (enter, attempt, retry, complete, error, etc.)
        message: Event description
        level: Logging level
    """
    logger.log(level, f"[{stage}] [{event_type}] {message}", extra={"stage": stage, "event": event_type})


def mask_secret(value: Optional[str]) -> str:
    """Mask all but the first and last four characters of a secret."""
    if not value:
        return ""
    if len(value) <= 8:
        return "*" * len(value)
    return value[:4] + "*" * (len(value) - 8) + value[-4:]
