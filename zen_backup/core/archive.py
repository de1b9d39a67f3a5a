"""Archive engine — select profile content, stage it, compress to ``tar.gz``."""

from __future__ import annotations

import os
import shutil
import tarfile
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from zen_backup.core.sqlite_copy import copy_database, is_database
from zen_backup.errors import ArchiveError, SqliteIntegrityError

# Never archived: credentials, cookies and profile locks
EXCLUDED_FILES = frozenset(
    {
        "cookies.sqlite",
        "key4.db",
        "logins.json",
        "cert9.db",
        ".parentlock",
        "parent.lock",
        "lock",
    }
)

EXCLUDED_SUFFIXES = ("-wal", "-shm")

# Caches, telemetry and crash reports
EXCLUDED_DIR_PREFIXES = (
    "cache2/",
    "crashes/",
    "datareporting/",
    "saved-telemetry-pings/",
    "minidumps/",
    "storage/temporary/",
    "storage/default/chrome/",
)

STORAGE_DEFAULT = "storage/default"
HTTP_CACHE_PREFIX = "storage/default/http"


@dataclass
class ArchiveResult:
    """Non-fatal findings from one archive run."""

    warnings: list[str] = field(default_factory=list)
    file_count: int = 0


def should_include(relative_path: str, is_dir: bool) -> bool:
    """Selection rule applied to every entry, relative to the profile root."""
    normalized = relative_path.replace("\\", "/").strip("/")
    name = normalized.rsplit("/", 1)[-1]

    if name in EXCLUDED_FILES:
        return False
    if name.endswith(EXCLUDED_SUFFIXES):
        return False
    for prefix in EXCLUDED_DIR_PREFIXES:
        if normalized == prefix.rstrip("/") or normalized.startswith(prefix):
            return False
    if normalized == STORAGE_DEFAULT and is_dir:
        return True
    if normalized.startswith(HTTP_CACHE_PREFIX):
        return False
    return True


def _stage_tree(source_root: Path, staging_root: Path, result: ArchiveResult) -> None:
    """Depth-first copy of every selected entry into *staging_root*."""
    pending: list[Path] = [source_root]
    while pending:
        current = pending.pop()
        with os.scandir(current) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            source = Path(entry.path)
            rel = source.relative_to(source_root).as_posix()
            is_dir = entry.is_dir(follow_symlinks=False)
            if not should_include(rel, is_dir):
                logger.debug(f"Excluded: {rel}")
                continue

            target = staging_root / rel
            if is_dir:
                target.mkdir(parents=True, exist_ok=True)
                pending.append(source)
                continue
            if not entry.is_file(follow_symlinks=False):
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            if is_database(entry.name):
                try:
                    outcome = copy_database(source, target)
                except SqliteIntegrityError as e:
                    logger.warning(f"Skipping corrupt database {rel}: {e}")
                    result.warnings.append(f"corrupt sqlite skipped: {rel}")
                    continue
                if outcome.used_fallback:
                    result.warnings.append(f"fallback sqlite copy used for {rel}")
            else:
                shutil.copy2(source, target)
            result.file_count += 1


def create_archive(profile_root: Path, archive_path: Path) -> ArchiveResult:
    """
    Snapshot *profile_root* into a gzip-compressed tar at *archive_path*.

    Entries are relative to the profile root.  The staging directory is
    always removed; on failure the partially written archive is removed as
    well, so listing and retention never see a truncated file.
    """
    result = ArchiveResult()
    archive_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with tempfile.TemporaryDirectory(prefix="zen-backup-staging-") as tmp_dir:
            staging = Path(tmp_dir)
            _stage_tree(profile_root, staging, result)
            with tarfile.open(archive_path, "w:gz") as tar:
                for child in sorted(staging.iterdir()):
                    tar.add(child, arcname=child.name)
    except (OSError, tarfile.TarError) as e:
        archive_path.unlink(missing_ok=True)
        raise ArchiveError(f"archive creation failed: {e}") from e
    except BaseException:
        archive_path.unlink(missing_ok=True)
        raise

    logger.info(
        f"Archived {result.file_count} files from {profile_root} into {archive_path.name}"
    )
    return result
