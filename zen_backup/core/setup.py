"""Install / uninstall — detect paths, write settings, register scheduled jobs."""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from zen_backup.config import Config, resolve_config_path
from zen_backup.context import Platform, RuntimeContext
from zen_backup.models.schedule import SchedulerStatus
from zen_backup.scheduler.base import SchedulerBackend
from zen_backup.scheduler.manager import get_scheduler

CLOUD_PROVIDERS = ("Google Drive", "iCloud Drive", "OneDrive", "Dropbox")


@dataclass
class InstallResult:
    config_path: Path
    profile_path: Path
    profile_detected: bool
    backup_path: Path
    cloud_path: Path | None
    scheduler: SchedulerStatus
    hints: list[str] = field(default_factory=list)


@dataclass
class UninstallResult:
    config_removed: bool
    backups_removed: bool
    scheduler: SchedulerStatus


def profile_candidates(ctx: RuntimeContext) -> list[Path]:
    """Where Zen keeps its default profile on each OS."""
    home = ctx.home
    if ctx.platform == Platform.DARWIN:
        return [home / "Library" / "Application Support" / "zen" / "Profiles" / "default"]
    if ctx.platform == Platform.WINDOWS:
        return [ctx.app_data / "zen" / "Profiles" / "default"]
    return [home / ".zen" / "default", home / ".config" / "zen" / "default"]


def detect_profile_path(ctx: RuntimeContext) -> Path | None:
    override = ctx.env.get("ZEN_BACKUP_PROFILE_PATH", "").strip()
    if override:
        return Path(override)
    for candidate in profile_candidates(ctx):
        if candidate.exists():
            return candidate
    return None


def cloud_candidates(ctx: RuntimeContext) -> list[tuple[str, Path]]:
    """Known sync-folder locations as ``(provider, path)``, most preferred first."""
    home = ctx.home
    if ctx.platform == Platform.DARWIN:
        cloud_storage = home / "Library" / "CloudStorage"
        google = sorted(cloud_storage.glob("GoogleDrive-*")) if cloud_storage.is_dir() else []
        return [
            *(("Google Drive", p / "My Drive") for p in google),
            ("iCloud Drive", home / "Library" / "Mobile Documents" / "com~apple~CloudDocs"),
            ("OneDrive", cloud_storage / "OneDrive-Personal"),
            ("Dropbox", home / "Dropbox"),
        ]
    if ctx.platform == Platform.WINDOWS:
        return [
            ("Google Drive", home / "Google Drive" / "My Drive"),
            ("OneDrive", home / "OneDrive"),
            ("Dropbox", home / "Dropbox"),
            ("Google Drive", ctx.app_data / "Google Drive" / "My Drive"),
        ]
    return [("Google Drive", home / "google-drive"), ("Dropbox", home / "Dropbox")]


def detect_cloud_path(ctx: RuntimeContext) -> Path | None:
    """``ZEN_BACKUP_CLOUD=none`` disables sync; ``ZEN_BACKUP_CLOUD_CUSTOM`` picks a folder."""
    if ctx.env.get("ZEN_BACKUP_CLOUD", "").strip().lower() == "none":
        return None
    custom = ctx.env.get("ZEN_BACKUP_CLOUD_CUSTOM", "").strip()
    if custom:
        return Path(custom)
    for provider, path in cloud_candidates(ctx):
        if path.exists():
            logger.info(f"Detected {provider} folder: {path}")
            return path
    return None


def default_backup_path(ctx: RuntimeContext) -> Path:
    return ctx.home / "zen-backups"


def install(ctx: RuntimeContext, scheduler: SchedulerBackend | None = None) -> InstallResult:
    """
    Write a fresh settings file for this machine and register both jobs.

    Every path written is absolute and fully expanded so scheduled runs do
    not depend on the environment they are launched with.
    """
    config_path = resolve_config_path(ctx)
    detected = detect_profile_path(ctx)
    profile_path = detected or ctx.home / "zen-profile"
    backup_path = default_backup_path(ctx)
    cloud_path = detect_cloud_path(ctx)

    config = Config(config_path)
    with config.batch_update():
        config.set("profile.path", str(profile_path))
        config.set("backup.local_path", str(backup_path))
        config.set("backup.cloud_path", str(cloud_path) if cloud_path else None)
    logger.info(f"Wrote settings to {config_path}")

    snapshot = Config(config_path).snapshot(ctx)
    scheduler = scheduler or get_scheduler(ctx)
    status = scheduler.install(snapshot)

    hints: list[str] = []
    if ctx.platform == Platform.DARWIN and not shutil.which(
        "terminal-notifier", path=ctx.env.get("PATH")
    ):
        hints.append(
            "Optional: install `terminal-notifier` for improved native notifications "
            "(fallback to osascript is used)."
        )

    return InstallResult(
        config_path=config_path,
        profile_path=profile_path,
        profile_detected=detected is not None,
        backup_path=backup_path,
        cloud_path=cloud_path,
        scheduler=status,
        hints=hints,
    )


def uninstall(
    ctx: RuntimeContext,
    purge_backups: bool = False,
    scheduler: SchedulerBackend | None = None,
) -> UninstallResult:
    """Remove scheduled jobs and settings; archives are kept unless *purge_backups*."""
    config_path = resolve_config_path(ctx)
    backup_root: Path | None = None
    if config_path.exists():
        backup_root = Config(config_path).snapshot(ctx).local_path

    scheduler = scheduler or get_scheduler(ctx)
    status = scheduler.uninstall()

    config_removed = config_path.exists()
    config_path.unlink(missing_ok=True)

    backups_removed = False
    if purge_backups and backup_root is not None and backup_root.exists():
        shutil.rmtree(backup_root)
        backups_removed = True
        logger.info(f"Removed backup directory {backup_root}")

    return UninstallResult(
        config_removed=config_removed,
        backups_removed=backups_removed,
        scheduler=status,
    )
