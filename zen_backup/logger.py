"""Loguru-based logging setup, plus the append-only ``backup.log`` line sink."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Literal

from loguru import logger

BACKUP_LOG_NAME = "backup.log"
NOTIFICATIONS_LOG_NAME = "notifications.log"

LogLevel = Literal["SUCCESS", "WARNING", "ERROR", "RESTORE"]

_LINE_FORMAT = "[{time:YYYY-MM-DD[T]HH:mm:ss.SSS!UTC}Z] {level}: {message}"

# sink file path → loguru handler id
_line_sinks: dict[str, int] = {}


def _register_levels() -> None:
    try:
        logger.level("RESTORE")
    except ValueError:
        logger.level("RESTORE", no=25, color="<cyan><bold>")


_register_levels()


def _console_filter(record) -> bool:
    # backup.log / notifications.log lines are reported through command output
    return "line_sink" not in record["extra"]


def setup_logger(log_dir: Path | None = None, verbose: bool = False) -> None:
    """Configure loguru with console + rotating file output."""
    logger.remove()
    _line_sinks.clear()

    # Console
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        format="<green>{time:HH:mm:ss}</green> | <level>{level:<7}</level> | {message}",
        colorize=True,
        filter=_console_filter,
    )

    # File
    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_dir / "zen-backup.log"),
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level:<7} | {name}:{line} | {message}",
            rotation="5 MB",
            retention="7 days",
            encoding="utf-8",
        )


def _line_sink(path: Path) -> str:
    """Attach (once) a file sink that only receives records bound to *path*."""
    key = str(path)
    if key not in _line_sinks:
        path.parent.mkdir(parents=True, exist_ok=True)
        _line_sinks[key] = logger.add(
            key,
            level="DEBUG",
            format=_LINE_FORMAT,
            filter=lambda record, key=key: record["extra"].get("line_sink") == key,
            colorize=False,
            encoding="utf-8",
            buffering=1,
        )
    return key


def append_log(backup_root: Path, level: LogLevel, message: str) -> None:
    """Append ``[<utc timestamp>] LEVEL: message`` to ``<backup_root>/backup.log``."""
    key = _line_sink(backup_root / BACKUP_LOG_NAME)
    logger.bind(line_sink=key).log(level, message)


def append_notification(backup_root: Path, line: str) -> None:
    """Record a delivered (or attempted) notification in ``notifications.log``."""
    key = _line_sink(backup_root / NOTIFICATIONS_LOG_NAME)
    logger.bind(line_sink=key).info(line)


def close_line_sinks() -> None:
    """Detach every per-root file sink (files are released)."""
    for handler_id in _line_sinks.values():
        try:
            logger.remove(handler_id)
        except ValueError:
            pass
    _line_sinks.clear()
