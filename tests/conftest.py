"""Shared fixtures: an isolated home directory, a pinned clock and a sample profile."""

from __future__ import annotations

import json
import os
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path

import pytest

from zen_backup.config import BackupConfiguration, Config
from zen_backup.context import Platform, RuntimeContext
from zen_backup.logger import close_line_sinks

FIXED_NOW = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


def make_sqlite(path: Path, rows: int = 3) -> None:
    """Create a small, valid SQLite database at *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with closing(sqlite3.connect(str(path))) as conn:
        conn.execute("CREATE TABLE moz_places (id INTEGER PRIMARY KEY, url TEXT)")
        conn.executemany(
            "INSERT INTO moz_places (url) VALUES (?)",
            [(f"https://example.com/{i}",) for i in range(rows)],
        )
        conn.commit()


@pytest.fixture(autouse=True)
def _release_log_sinks():
    yield
    close_line_sinks()


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def ctx(tmp_path: Path, home: Path) -> RuntimeContext:
    return RuntimeContext(
        now=FIXED_NOW,
        platform=Platform.LINUX,
        env={
            "HOME": str(home),
            "PATH": os.environ.get("PATH", ""),
            "ZEN_BACKUP_SCHEDULER_MODE": "simulated",
            "ZEN_BACKUP_NOTIFY": "log-only",
            "ZEN_BACKUP_BROWSER_RUNNING": "0",
        },
        cwd=tmp_path,
    )


@pytest.fixture
def profile(home: Path) -> Path:
    """A profile with databases, plain files and content that must never be archived."""
    root = home / ".zen" / "default"
    make_sqlite(root / "places.sqlite", rows=5)
    make_sqlite(root / "cookies.sqlite")
    make_sqlite(root / "storage" / "default" / "site" / "idb" / "data.sqlite")
    (root / "prefs.js").write_text('user_pref("browser.startup.page", 3);\n', encoding="utf-8")
    (root / "places.sqlite-wal").write_bytes(b"")
    (root / "parent.lock").write_text("", encoding="utf-8")
    (root / "logins.json").write_text("{}", encoding="utf-8")
    (root / "cache2" / "entries").mkdir(parents=True)
    (root / "cache2" / "entries" / "blob").write_bytes(b"cached")
    (root / "crashes" / "events").mkdir(parents=True)
    (root / "storage" / "default" / "http+++example.com").mkdir(parents=True)
    (root / "storage" / "default" / "http+++example.com" / "ls.txt").write_text("x", encoding="utf-8")
    (root / "chrome").mkdir()
    (root / "chrome" / "userChrome.css").write_text("/* theme */\n", encoding="utf-8")
    return root


def write_settings(ctx: RuntimeContext, **sections: dict) -> Path:
    """Write a settings file at the default location for *ctx* and return its path."""
    path = ctx.home / ".config" / "zen-profile-backup" / "settings.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(sections, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def settings(ctx: RuntimeContext, profile: Path, home: Path) -> Path:
    return write_settings(
        ctx,
        profile={"path": str(profile)},
        backup={"local_path": str(home / "zen-backups")},
    )


@pytest.fixture
def config(ctx: RuntimeContext, settings: Path) -> BackupConfiguration:
    return Config(settings).snapshot(ctx)
