"""Application configuration — JSON settings file with defaults and a read-only snapshot."""

from __future__ import annotations

import copy
import json
import re
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

from zen_backup.context import Platform, RuntimeContext
from zen_backup.errors import ConfigError, ConfigNotFoundError
from zen_backup.models.archive import ArchiveKind
from zen_backup.utils import expand_path

CONFIG_DIR_NAME = "zen-profile-backup"
CONFIG_FILE_NAME = "settings.json"

WEEKDAYS = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def resolve_config_path(ctx: RuntimeContext) -> Path:
    """Locate the settings file: ``ZEN_BACKUP_CONFIG`` override, else the per-OS default."""
    override = ctx.env.get("ZEN_BACKUP_CONFIG", "")
    if override.strip():
        path = Path(override)
        return path if path.is_absolute() else (ctx.cwd / path).resolve()
    if ctx.platform == Platform.WINDOWS:
        return ctx.app_data / CONFIG_DIR_NAME / CONFIG_FILE_NAME
    return ctx.home / ".config" / CONFIG_DIR_NAME / CONFIG_FILE_NAME


@dataclass(frozen=True)
class ScheduleTime:
    hour: int
    minute: int

    @classmethod
    def parse(cls, raw: str, key: str) -> ScheduleTime:
        match = _TIME_RE.match(raw.strip())
        if not match:
            raise ConfigError(f"{key} must be a HH:MM time, got {raw!r}")
        return cls(int(match.group(1)), int(match.group(2)))

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class BackupConfiguration:
    """Validated, fully expanded settings for one command invocation. Never mutated."""

    profile_path: Path
    local_path: Path
    cloud_path: Path | None
    daily_days: int
    weekly_days: int
    daily_time: ScheduleTime
    weekly_day: str
    weekly_time: ScheduleTime
    notifications_enabled: bool
    config_path: Path

    def retention_days(self, kind: ArchiveKind) -> int:
        return self.daily_days if kind == ArchiveKind.DAILY else self.weekly_days

    @property
    def weekday_number(self) -> int:
        """Weekly day as 0 (Sunday) … 6 (Saturday)."""
        return WEEKDAYS.index(self.weekly_day.lower())


class Config:
    """JSON-based settings file. Dot-separated keys mirror the file's sections."""

    _DEFAULTS: dict[str, Any] = {
        "profile": {"path": "~/.zen"},
        "backup": {"local_path": "~/zen-backups"},
        "retention": {"daily_days": 30, "weekly_days": 84},
        "schedule": {
            "daily_time": "12:30",
            "weekly_day": "Sunday",
            "weekly_time": "02:00",
        },
        "notifications": {"enabled": True},
    }

    def __init__(self, path: Path) -> None:
        self._data: dict[str, Any] = {}
        self._path = path
        self._defer_save = False
        self._load()

    def _load(self) -> None:
        """Load config from disk, merging with defaults."""
        self._data = copy.deepcopy(self._DEFAULTS)
        if not self._path.exists():
            return
        try:
            with open(self._path, encoding="utf-8") as f:
                user_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"config parse error: invalid JSON in {self._path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"config could not be read: {self._path}: {e}") from e
        if not isinstance(user_data, dict):
            raise ConfigError("config root must be an object")
        self._deep_merge(self._data, user_data)

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Recursively merge override into base."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def save(self) -> None:
        """Persist config to disk atomically."""
        if self._defer_save:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False, indent=2)
            tmp_path.replace(self._path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.debug(f"Saved config to {self._path}")

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Context manager for batching multiple config changes into a single write."""
        self._defer_save = True
        try:
            yield
        finally:
            self._defer_save = False
        self.save()

    # ── Generic access ──

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        node: Any = self._data
        for part in key.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = value
        self.save()

    # ── Typed access ──

    def _string(self, key: str) -> str:
        value = self.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"{key} must be a non-empty string")
        return value

    def _integer(self, key: str) -> int:
        value = self.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ConfigError(f"{key} must be a non-negative integer")
        return value

    def _boolean(self, key: str) -> bool:
        value = self.get(key)
        if not isinstance(value, bool):
            raise ConfigError(f"{key} must be a boolean")
        return value

    def snapshot(self, ctx: RuntimeContext) -> BackupConfiguration:
        """Validate every key and expand paths into a frozen ``BackupConfiguration``."""
        base_dir = self._path.parent
        expand = lambda raw: expand_path(raw, ctx.env, ctx.home, base_dir)  # noqa: E731

        cloud_raw = self.get("backup.cloud_path")
        if cloud_raw is not None and not isinstance(cloud_raw, str):
            raise ConfigError("backup.cloud_path must be a string")

        weekly_day = self._string("schedule.weekly_day")
        if weekly_day.strip().lower() not in WEEKDAYS:
            raise ConfigError(f"schedule.weekly_day must be a weekday name, got {weekly_day!r}")

        return BackupConfiguration(
            profile_path=expand(self._string("profile.path")),
            local_path=expand(self._string("backup.local_path")),
            cloud_path=expand(cloud_raw) if cloud_raw and cloud_raw.strip() else None,
            daily_days=self._integer("retention.daily_days"),
            weekly_days=self._integer("retention.weekly_days"),
            daily_time=ScheduleTime.parse(self._string("schedule.daily_time"), "schedule.daily_time"),
            weekly_day=weekly_day.strip().capitalize(),
            weekly_time=ScheduleTime.parse(self._string("schedule.weekly_time"), "schedule.weekly_time"),
            notifications_enabled=self._boolean("notifications.enabled"),
            config_path=self._path,
        )


def load_config(ctx: RuntimeContext, required: bool = True) -> BackupConfiguration | None:
    """Load and validate the settings file for this invocation."""
    path = resolve_config_path(ctx)
    if not path.exists():
        if required:
            raise ConfigNotFoundError(f"config file not found: {path}")
        return None
    return Config(path).snapshot(ctx)
