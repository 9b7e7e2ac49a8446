#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Unit tests for logging configuration.
"""

import io
import json
import logging
from datetime import datetime, timezone

import pytest

from contract_deployer.utils.logger import (
    LoggerConfig,
    configure_logger,
    log_stage_event,
    mask_secret,
    run_log_path,
)


@pytest.fixture
def isolated_logger_name(request):
    """Logger name outside the package hierarchy, cleaned up after the test."""
    name = f"test_logger.{request.node.name}"
    yield name
    logger = logging.getLogger(name)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()


class TestLogger:
    """Tests for the logging helpers."""

    def test_run_log_path(self, tmp_path):
        started = datetime(2026, 10, 19, 8, 5, 3, 120000, tzinfo=timezone.utc)

        path = run_log_path(tmp_path, started)

        assert path == tmp_path / "deploy" / "2026-10-19T08-05-03.120000Z.log"

    def test_configure_writes_console_and_file(self, tmp_path, isolated_logger_name):
        stream = io.StringIO()
        log_file = tmp_path / "deploy" / "run.log"
        logger = configure_logger(LoggerConfig(
            name=isolated_logger_name,
            console_level="INFO",
            file_level="DEBUG",
            log_file=str(log_file),
            stream=stream,
        ))

        logger.debug("debug detail")
        logger.info("stage reached")

        assert "stage reached" in stream.getvalue()
        assert "debug detail" not in stream.getvalue()
        file_text = log_file.read_text()
        assert "debug detail" in file_text
        assert "stage reached" in file_text

    def test_reconfigure_replaces_handlers(self, isolated_logger_name):
        config = LoggerConfig(name=isolated_logger_name, stream=io.StringIO())

        configure_logger(config)
        logger = configure_logger(config)

        assert len(logger.handlers) == 1

    def test_json_stage_event(self, isolated_logger_name):
        stream = io.StringIO()
        logger = configure_logger(LoggerConfig(
            name=isolated_logger_name, console_level="DEBUG", json_logs=True, stream=stream,
        ))

        log_stage_event(logger, "AwaitingFunds", "attempt", "Poll attempt 1")

        record = json.loads(stream.getvalue().strip())
        assert record["stage"] == "AwaitingFunds"
        assert record["event"] == "attempt"
        assert record["level"] == "INFO"
        assert record["message"] == "[AwaitingFunds] [attempt] Poll attempt 1"

    @pytest.mark.parametrize("value,expected", [
        (None, ""),
        ("abcd", "****"),
        ("0123456789abcdef", "0123********cdef"),
    ])
    def test_mask_secret(self, value, expected):
        assert mask_secret(value) == expected
