"""Runtime context — the explicit clock, platform and environment for one invocation."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from pathlib import Path
from typing import Mapping


class Platform(StrEnum):
    """Target operating system."""

    DARWIN = "darwin"
    LINUX = "linux"
    WINDOWS = "windows"

    @classmethod
    def current(cls) -> Platform:
        if sys.platform == "darwin":
            return cls.DARWIN
        if sys.platform.startswith("win"):
            return cls.WINDOWS
        return cls.LINUX


def _parse_now(raw: str) -> datetime:
    value = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class RuntimeContext:
    """
    Everything an entry point needs to know about "where" and "when" it runs.

    Passed explicitly to every orchestrator instead of reading ``os.environ``,
    ``datetime.now()`` or ``sys.platform`` deep inside the core, so tests can
    pin the clock, the target OS and the home directory.
    """

    now: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
    platform: Platform = field(default_factory=Platform.current)
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: Path = field(default_factory=Path.cwd)

    @classmethod
    def from_environment(cls, env: Mapping[str, str] | None = None) -> RuntimeContext:
        """Build a context from the process environment (``ZEN_BACKUP_TEST_*`` honoured)."""
        env = dict(os.environ if env is None else env)
        now = datetime.now(tz=timezone.utc)
        if env.get("ZEN_BACKUP_TEST_NOW", "").strip():
            now = _parse_now(env["ZEN_BACKUP_TEST_NOW"])
        platform = Platform.current()
        if env.get("ZEN_BACKUP_TEST_OS", "").strip():
            platform = Platform(env["ZEN_BACKUP_TEST_OS"].strip().lower())
        return cls(now=now, platform=platform, env=env, cwd=Path.cwd())

    @property
    def today(self) -> str:
        """UTC calendar day of ``now`` as ``YYYY-MM-DD``."""
        return self.now.astimezone(timezone.utc).strftime("%Y-%m-%d")

    @property
    def home(self) -> Path:
        for key in ("HOME", "USERPROFILE"):
            value = self.env.get(key, "")
            if value.strip():
                return Path(value)
        return self.cwd

    @property
    def app_data(self) -> Path:
        value = self.env.get("APPDATA", "")
        if value.strip():
            return Path(value)
        return self.home / "AppData" / "Roaming"

    @property
    def is_host_platform(self) -> bool:
        """True when the target platform is the OS this process actually runs on."""
        return self.platform == Platform.current()

    def flag(self, name: str) -> bool:
        """Read a ``"1"``-style boolean switch from the environment."""
        return self.env.get(name, "").strip() == "1"
