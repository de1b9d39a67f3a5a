"""SQLite safe-copy — capture a live browser database without corrupting it."""

from __future__ import annotations

import shutil
import sqlite3
import time
from contextlib import closing
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from zen_backup.errors import SqliteIntegrityError

DATABASE_SUFFIXES = (".sqlite", ".db")
COMPANION_SUFFIXES = ("-wal", "-shm")

# Seconds to wait on a locked source before giving up on the online backup
BUSY_TIMEOUT = 1.0
BACKUP_PAGES = 256
# SQLITE_BUSY, SQLITE_LOCKED
BLOCKED_STATUSES = (5, 6)


@dataclass
class SqliteCopyResult:
    """Outcome of one database copy."""

    used_fallback: bool = False


def is_database(name: str) -> bool:
    return name.endswith(DATABASE_SUFFIXES)


def _companions(path: Path) -> list[Path]:
    return [path.with_name(path.name + suffix) for suffix in COMPANION_SUFFIXES]


def _online_backup(source: Path, target: Path) -> None:
    """Copy through the SQLite backup API, reading the source read-only."""
    uri = f"{source.resolve().as_uri()}?mode=ro"
    blocked_since: float | None = None

    def progress(status: int, remaining: int, total: int) -> None:
        # Connection.backup retries a locked source forever unless told otherwise
        nonlocal blocked_since
        if status not in BLOCKED_STATUSES:
            blocked_since = None
            return
        now = time.monotonic()
        if blocked_since is None:
            blocked_since = now
        elif now - blocked_since > BUSY_TIMEOUT:
            raise sqlite3.OperationalError(f"{source.name} stayed locked during backup")

    with closing(sqlite3.connect(uri, uri=True, timeout=BUSY_TIMEOUT)) as src:
        # Honours the busy timeout, so an exclusively locked source fails here
        src.execute("SELECT count(*) FROM sqlite_master").fetchone()
        with closing(sqlite3.connect(str(target))) as dst:
            src.backup(dst, pages=BACKUP_PAGES, progress=progress)


def _fallback_copy(source: Path, target: Path) -> None:
    """Raw copy of the main file and its WAL/SHM, folded into a single file."""
    shutil.copyfile(source, target)
    for src_companion, dst_companion in zip(_companions(source), _companions(target)):
        if src_companion.exists():
            shutil.copyfile(src_companion, dst_companion)

    try:
        with closing(sqlite3.connect(str(target))) as conn:
            conn.execute("PRAGMA wal_checkpoint(FULL);")
    except sqlite3.Error as e:
        # The integrity check that follows decides whether the copy is usable
        logger.debug(f"WAL checkpoint failed on {target.name}: {e}")

    for companion in _companions(target):
        companion.unlink(missing_ok=True)


def check_integrity(path: Path) -> None:
    """Run ``PRAGMA integrity_check``; raise ``SqliteIntegrityError`` unless it reports ok."""
    try:
        with closing(sqlite3.connect(str(path))) as conn:
            rows = conn.execute("PRAGMA integrity_check;").fetchall()
    except sqlite3.Error as e:
        raise SqliteIntegrityError(f"sqlite integrity check failed for {path}: {e}") from e

    if not rows or str(rows[0][0]).strip().lower() != "ok":
        detail = "; ".join(str(r[0]) for r in rows[:5])
        raise SqliteIntegrityError(
            f"sqlite integrity check did not return ok for {path}: {detail}"
        )


def copy_database(source: Path, target: Path) -> SqliteCopyResult:
    """
    Produce a consistent copy of *source* at *target*.

    Tries the online backup API first, which is safe under concurrent
    writers.  If the source is locked (or otherwise refuses the backup), falls
    back to copying the raw files and checkpointing the copy.  Either way the
    destination must pass an integrity check before this returns.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    result = SqliteCopyResult()

    try:
        _online_backup(source, target)
    except sqlite3.Error as e:
        logger.debug(f"Online backup of {source.name} failed, using raw copy: {e}")
        target.unlink(missing_ok=True)
        for companion in _companions(target):
            companion.unlink(missing_ok=True)
        _fallback_copy(source, target)
        result.used_fallback = True

    try:
        check_integrity(target)
    except SqliteIntegrityError:
        target.unlink(missing_ok=True)
        raise
    return result
