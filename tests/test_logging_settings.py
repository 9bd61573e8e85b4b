"""Tests for logging settings parsing."""

import logging
from pathlib import Path

from chatgateway.logging_settings import (
    STREAM_LOGGERS,
    apply_stream_levels,
    parse_logging_settings,
)


def test_parse_logging_settings(tmp_path: Path) -> None:
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text(
        """
# Test config
terminal = debug
streams = warning
retention_hours = 72
"""
    )

    settings = parse_logging_settings(config_file)

    assert settings.terminal_level == 10  # DEBUG
    assert settings.streams_level == 30  # WARNING
    assert settings.retention_hours == 72


def test_parse_logging_settings_defaults(tmp_path: Path) -> None:
    settings = parse_logging_settings(tmp_path / "nonexistent.conf")

    assert settings.terminal_level == 20  # Default INFO
    assert settings.streams_level == 20  # Default INFO
    assert settings.retention_hours == 48


def test_invalid_values_fall_back(tmp_path: Path) -> None:
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text(
        """
terminal = loud
not a setting
retention_hours = invalid
"""
    )

    settings = parse_logging_settings(config_file)

    assert settings.terminal_level == 20
    assert settings.retention_hours == 48


def test_negative_retention_clamps_to_zero(tmp_path: Path) -> None:
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text("retention_hours = -10\n")

    assert parse_logging_settings(config_file).retention_hours == 0


def test_off_disables_stream_loggers(tmp_path: Path) -> None:
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text("streams = off\n")

    settings = parse_logging_settings(config_file)
    assert settings.streams_level is None

    apply_stream_levels(settings)
    try:
        assert all(logging.getLogger(name).disabled for name in STREAM_LOGGERS)
    finally:
        config_file.write_text("streams = debug\n")
        apply_stream_levels(parse_logging_settings(config_file))

    assert logging.getLogger("chatgateway.chat").level == logging.DEBUG
    assert not logging.getLogger("chatgateway.chat").disabled
