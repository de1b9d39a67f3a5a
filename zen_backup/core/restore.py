"""Restore manager — validate an archive, then swap it in for the live profile."""

from __future__ import annotations

import re
import shutil
import tarfile
import tempfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable

from loguru import logger

from zen_backup.config import BackupConfiguration
from zen_backup.context import RuntimeContext
from zen_backup.core.sqlite_copy import check_integrity, is_database
from zen_backup.errors import (
    ArchiveInvalidError,
    ArchiveNotFoundError,
    BrowserRunningError,
    SqliteIntegrityError,
)
from zen_backup.logger import append_log
from zen_backup.models.archive import ArchiveKind
from zen_backup.platform.browser import is_browser_running

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:/")

# A damaged gzip stream surfaces as zlib.error rather than a TarError
_ARCHIVE_READ_ERRORS = (tarfile.TarError, zlib.error, EOFError, OSError)


@dataclass
class RestoreResult:
    """Result of a restore operation."""

    archive_path: Path
    pre_restore_path: Path
    restored_files: int = 0
    integrity_failures: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.integrity_failures


def normalize_entry_name(raw: str) -> str:
    """Entry name with ``\\`` as ``/`` and leading ``./`` and ``/`` removed."""
    value = raw.strip().replace("\\", "/")
    while value.startswith("./"):
        value = value[2:]
    return value.lstrip("/")


def unsafe_entry_reason(member: tarfile.TarInfo) -> str | None:
    """Why *member* could write outside the extraction directory, or None if it is safe."""
    name = normalize_entry_name(member.name)
    if ".." in name.split("/"):
        return "parent directory segment"
    if _DRIVE_PREFIX.match(name):
        return "drive-letter path"
    if member.issym() or member.islnk():
        target = member.linkname.replace("\\", "/")
        if target.startswith("/") or _DRIVE_PREFIX.match(target):
            return "absolute link target"
        base = PurePosixPath(name).parent if member.issym() else PurePosixPath()
        depth = 0
        for part in (base / target).parts:
            depth = depth - 1 if part == ".." else depth + (part != ".")
            if depth < 0:
                return "link escapes archive root"
    return None


def validate_archive(archive_path: Path) -> list[tarfile.TarInfo]:
    """List every entry and reject the archive if any one of them is unsafe."""
    try:
        with tarfile.open(archive_path, "r:gz") as tar:
            members = tar.getmembers()
    except _ARCHIVE_READ_ERRORS as e:
        raise ArchiveInvalidError(f"invalid or corrupted archive: {archive_path.name}") from e

    for member in members:
        reason = unsafe_entry_reason(member)
        if reason:
            raise ArchiveInvalidError(f"invalid archive entry: {member.name} ({reason})")
    return members


def next_pre_restore_path(profile_path: Path, ctx: RuntimeContext) -> Path:
    """``<profile>.pre-restore-<date>``, then ``-2``, ``-3``… until unused."""
    base = f"{profile_path.name}.pre-restore-{ctx.today}"
    candidate = profile_path.with_name(base)
    n = 2
    while candidate.exists():
        candidate = profile_path.with_name(f"{base}-{n}")
        n += 1
    return candidate


class RestoreManager:
    """Restore a profile from an archive with staging and an atomic safety rename."""

    def __init__(
        self,
        config: BackupConfiguration,
        ctx: RuntimeContext,
        browser_running: Callable[[RuntimeContext], bool] = is_browser_running,
    ) -> None:
        self._config = config
        self._ctx = ctx
        self._browser_running = browser_running

    def locate_archive(self, locator: str) -> Path:
        """Literal path first, then bare filename under the backup root and its kind folders."""
        root = self._config.local_path
        literal = Path(locator)
        candidates = [
            literal if literal.is_absolute() else self._ctx.cwd / literal,
            root / locator,
            *(root / str(kind) / locator for kind in ArchiveKind),
        ]
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        raise ArchiveNotFoundError(f"archive not found: {locator}")

    def restore(self, locator: str) -> RestoreResult:
        """
        Replace the live profile with the contents of an archive.

        Preconditions (browser closed, archive found, archive listable and
        safe) are all checked before anything is written.  The old profile is
        renamed to a pre-restore directory in one step and is never deleted
        here.  Databases that fail the post-restore integrity check are
        reported in the result; the restored profile is left in place.
        """
        if self._browser_running(self._ctx):
            raise BrowserRunningError("Zen browser must be closed before restoring")

        archive_path = self.locate_archive(locator)
        validate_archive(archive_path)
        profile_path = self._config.profile_path

        with tempfile.TemporaryDirectory(prefix="zen-restore-staging-") as tmp_dir:
            staging = Path(tmp_dir)
            try:
                with tarfile.open(archive_path, "r:gz") as tar:
                    tar.extractall(staging, filter="data")
            except _ARCHIVE_READ_ERRORS as e:
                raise ArchiveInvalidError(
                    f"invalid or corrupted archive: {archive_path.name}"
                ) from e

            pre_restore_path = next_pre_restore_path(profile_path, self._ctx)
            if profile_path.exists():
                profile_path.rename(pre_restore_path)
            else:
                pre_restore_path.mkdir(parents=True)
            logger.info(f"Previous profile moved to {pre_restore_path}")

            profile_path.mkdir(parents=True, exist_ok=True)
            shutil.copytree(staging, profile_path, dirs_exist_ok=True)

        result = RestoreResult(archive_path=archive_path, pre_restore_path=pre_restore_path)
        for path in sorted(profile_path.rglob("*")):
            if not path.is_file():
                continue
            result.restored_files += 1
            if not is_database(path.name):
                continue
            try:
                check_integrity(path)
            except SqliteIntegrityError as e:
                logger.error(str(e))
                result.integrity_failures.append(str(path.relative_to(profile_path)))

        append_log(self._config.local_path, "RESTORE", f"restored profile from {archive_path.name}")
        if result.integrity_failures:
            append_log(
                self._config.local_path,
                "ERROR",
                "integrity check failed after restore: "
                + ", ".join(result.integrity_failures)
                + f" (previous profile kept at {pre_restore_path})",
            )
        logger.info(f"Restored {result.restored_files} files from {archive_path.name}")
        return result
