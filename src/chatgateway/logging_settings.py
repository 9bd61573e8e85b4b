"""Read the ``key = value`` logging settings file shipped next to the app."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

LEVELS: dict[str, int | None] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": None,
}

STREAM_LOGGERS = (
    "chatgateway.chat",
    "chatgateway.client",
    "chatgateway.providers",
)

DEFAULT_RETENTION_HOURS = 48


@dataclass(frozen=True)
class LoggingSettings:
    terminal_level: int | None = logging.INFO
    streams_level: int | None = logging.INFO
    retention_hours: int = DEFAULT_RETENTION_HOURS


def _read_entries(path: Path) -> dict[str, str]:
    entries: dict[str, str] = {}
    if not path.exists():
        return entries
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.split("#", 1)[0].strip()
        key, sep, value = line.partition("=")
        if sep and key.strip():
            entries[key.strip().lower()] = value.strip()
    return entries


def _level(entries: dict[str, str], key: str) -> int | None:
    value = entries.get(key)
    if value is None:
        return logging.INFO
    return LEVELS.get(value.lower(), logging.INFO)


def parse_logging_settings(path: Path) -> LoggingSettings:
    """Parse ``terminal``, ``streams`` and ``retention_hours`` from *path*.

    Missing files and unrecognised values fall back to the defaults; a
    negative retention is treated as zero (no rotation).
    """

    entries = _read_entries(path)
    retention = DEFAULT_RETENTION_HOURS
    if "retention_hours" in entries:
        try:
            retention = max(0, int(entries["retention_hours"]))
        except ValueError:
            pass

    return LoggingSettings(
        terminal_level=_level(entries, "terminal"),
        streams_level=_level(entries, "streams"),
        retention_hours=retention,
    )


def apply_stream_levels(settings: LoggingSettings) -> None:
    """Set (or silence) the loggers that trace provider streams."""

    for name in STREAM_LOGGERS:
        logger = logging.getLogger(name)
        logger.disabled = settings.streams_level is None
        if settings.streams_level is not None:
            logger.setLevel(settings.streams_level)


__all__ = [
    "LoggingSettings",
    "STREAM_LOGGERS",
    "apply_stream_levels",
    "parse_logging_settings",
]
