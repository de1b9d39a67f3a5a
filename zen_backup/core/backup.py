"""Backup manager — archive the profile, prune old archives, mirror to the cloud folder."""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from loguru import logger

from zen_backup.config import BackupConfiguration
from zen_backup.context import RuntimeContext
from zen_backup.core.archive import create_archive
from zen_backup.core.naming import next_archive_path
from zen_backup.core.retention import prune_archives
from zen_backup.errors import ProfileNotFoundError
from zen_backup.logger import append_log
from zen_backup.models.archive import ArchiveKind
from zen_backup.platform.browser import is_browser_running
from zen_backup.platform.notifications import notify

BROWSER_RUNNING_WARNING = (
    "browser is running; SQLite databases are safely backed up, "
    "but session files may be mid-write"
)


@dataclass
class BackupResult:
    """Result of one backup run."""

    kind: ArchiveKind
    archive_path: Path
    warnings: list[str] = field(default_factory=list)
    pruned: list[Path] = field(default_factory=list)
    cloud_path: Path | None = None
    cloud_error: str = ""

    @property
    def partial_failure(self) -> bool:
        return bool(self.cloud_error)


class BackupManager:
    """Sequences one backup: precondition checks, archive, retention, cloud copy."""

    def __init__(
        self,
        config: BackupConfiguration,
        ctx: RuntimeContext,
        browser_running: Callable[[RuntimeContext], bool] = is_browser_running,
    ) -> None:
        self._config = config
        self._ctx = ctx
        self._browser_running = browser_running

    @property
    def backup_root(self) -> Path:
        return self._config.local_path

    def _notify(self, title: str, message: str) -> None:
        notify(self._config, self._ctx, title, message)

    def create_backup(self, kind: ArchiveKind) -> BackupResult:
        """
        Create one *kind* archive of the configured profile.

        The local archive is the primary result: a failed cloud copy is
        logged, notified and reported in ``cloud_error`` but never rolls the
        local archive back.
        """
        kind = ArchiveKind(kind)
        profile = self._config.profile_path
        if not profile.exists():
            message = f"profile path not found: {profile}"
            self._notify("Zen Backup Error", message)
            raise ProfileNotFoundError(message)

        if self._browser_running(self._ctx):
            append_log(self.backup_root, "WARNING", BROWSER_RUNNING_WARNING)
            self._notify("Zen Backup", BROWSER_RUNNING_WARNING)

        kind_dir = self.backup_root / str(kind)
        kind_dir.mkdir(parents=True, exist_ok=True)
        archive_path = next_archive_path(kind_dir, kind, self._ctx.now)
        archive = create_archive(profile, archive_path)

        result = BackupResult(kind=kind, archive_path=archive_path, warnings=archive.warnings)
        for warning in archive.warnings:
            append_log(self.backup_root, "WARNING", warning)

        retention_days = self._config.retention_days(kind)
        pruned = prune_archives(self.backup_root, kind, retention_days, self._ctx.now)
        result.pruned = pruned.deleted
        for path in pruned.deleted:
            append_log(self.backup_root, "SUCCESS", f"pruned old {kind} backup {path}")

        if self._config.cloud_path is not None:
            self._copy_to_cloud(result, self._config.cloud_path, retention_days)

        append_log(self.backup_root, "SUCCESS", f"created {kind} backup {archive_path}")
        return result

    def _copy_to_cloud(self, result: BackupResult, cloud_root: Path, retention_days: int) -> None:
        try:
            cloud_dir = cloud_root / str(result.kind)
            cloud_dir.mkdir(parents=True, exist_ok=True)
            target = cloud_dir / result.archive_path.name
            shutil.copy2(result.archive_path, target)
            prune_archives(cloud_root, result.kind, retention_days, self._ctx.now)
            result.cloud_path = target
            logger.info(f"Copied {result.archive_path.name} to {cloud_dir}")
        except OSError as e:
            result.cloud_error = f"cloud sync failed: {e}"
            append_log(self.backup_root, "ERROR", result.cloud_error)
            self._notify("Zen Backup Warning", result.cloud_error)
