"""Tests for logging configuration."""

from __future__ import annotations

import structlog

from creditgate.logging import configure_logging


def test_configure_logging_outputs_json(capsys):
    configure_logging()
    logger = structlog.get_logger()
    logger.info("quota_reserved", user_id="u-1", cost=2)
    out = capsys.readouterr().out
    assert '"event": "quota_reserved"' in out
    assert '"user_id": "u-1"' in out


def test_configure_logging_console_renderer(capsys):
    configure_logging(json_logs=False)
    try:
        structlog.get_logger().info("window_rolled_over", day=True)
        out = capsys.readouterr().out
        assert "window_rolled_over" in out
        assert "day=True" in out
    finally:
        configure_logging()
