"""Command orchestrators — one function per CLI verb, returning text and an exit code.

Each ``run_*`` function takes an explicit ``RuntimeContext`` and never
prints; the CLI layer writes ``CommandResult.stdout``/``stderr`` out.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterator

from loguru import logger

from zen_backup.config import BackupConfiguration, load_config
from zen_backup.context import RuntimeContext
from zen_backup.core import setup
from zen_backup.core.backup import BackupManager
from zen_backup.core.inventory import directory_size, is_readable_dir, latest_archive, list_archives
from zen_backup.core.restore import RestoreManager
from zen_backup.errors import BackupDirNotFoundError, ConfigNotFoundError, ZenBackupError
from zen_backup.models.archive import ArchiveEntry, ArchiveKind
from zen_backup.models.schedule import JobState, SchedulerStatus
from zen_backup.scheduler.base import SchedulerBackend
from zen_backup.scheduler.manager import get_scheduler
from zen_backup.utils import format_size

SCHEDULE_ACTIONS = ("start", "resume", "stop", "pause", "status")


@dataclass
class CommandResult:
    exit_code: int = 0
    stdout: list[str] = field(default_factory=list)
    stderr: list[str] = field(default_factory=list)


def _guarded(body: Callable[[CommandResult], None]) -> CommandResult:
    """Run *body*; a ``ZenBackupError`` becomes a message on stderr and its exit code."""
    result = CommandResult()
    try:
        body(result)
    except ZenBackupError as e:
        logger.debug(f"{e.code}: {e.message}")
        result.stderr.append(e.message)
        result.exit_code = e.exit_code
    except OSError as e:
        logger.error(f"Filesystem error: {e}")
        result.stderr.append(str(e))
        result.exit_code = 1
    return result


def _require_config(ctx: RuntimeContext) -> BackupConfiguration:
    config = load_config(ctx, required=True)
    if config is None:
        raise ConfigNotFoundError("config file not found")
    return config


def _job_lines(status: SchedulerStatus) -> Iterator[str]:
    if not status.labels:
        yield "No scheduled jobs."
        return
    for label in status.labels:
        yield f"{label}: {status.state_of(label)}"


# ── backup / restore ──


def run_backup(kind: str, ctx: RuntimeContext) -> CommandResult:
    def body(result: CommandResult) -> None:
        config = _require_config(ctx)
        backup = BackupManager(config, ctx).create_backup(ArchiveKind(kind))
        if backup.cloud_error:
            result.stderr.append(backup.cloud_error)
            result.exit_code = 1
        result.stdout.append(f"Created {backup.kind} backup: {backup.archive_path}")

    return _guarded(body)


def run_restore(archive: str, ctx: RuntimeContext) -> CommandResult:
    def body(result: CommandResult) -> None:
        config = _require_config(ctx)
        restored = RestoreManager(config, ctx).restore(archive)
        result.stdout.append(f"Restored from archive: {restored.archive_path}")
        result.stdout.append(f"Pre-restore backup: {restored.pre_restore_path}")
        if not restored.success:
            result.stderr.append(
                "integrity check failed after restore: " + ", ".join(restored.integrity_failures)
            )
            result.exit_code = 1

    return _guarded(body)


# ── inspection ──


def run_list(ctx: RuntimeContext) -> CommandResult:
    def body(result: CommandResult) -> None:
        config = _require_config(ctx)
        root = config.local_path
        if not root.exists():
            raise BackupDirNotFoundError(f"backup directory not found: {root}")

        entries = list_archives(root)
        if not entries:
            result.stdout.append("No backups found (empty backup directory).")
            return
        for kind in ArchiveKind:
            result.stdout.append(f"{kind}:")
            for entry in (e for e in entries if e.kind == kind):
                result.stdout.append(f"  {entry.name} ({format_size(entry.size)})")

    return _guarded(body)


# A latest daily archive older than this many days is reported as stale
STALE_DAILY_DAYS = 3


def _health_line(latest_daily: ArchiveEntry | None, ctx: RuntimeContext) -> str:
    if latest_daily is None or latest_daily.date is None:
        return "No backups yet. Run a backup."
    if (ctx.now.date() - latest_daily.date).days > STALE_DAILY_DAYS:
        return "Warning: latest daily backup is stale."
    return "Health: recent daily backup exists."


def run_status(ctx: RuntimeContext, scheduler: SchedulerBackend | None = None) -> CommandResult:
    def body(result: CommandResult) -> None:
        config = load_config(ctx, required=False)
        if config is None:
            result.stdout.append("Not installed")
            result.stdout.append('Run "zen-backup install" to configure backups.')
            return

        out = result.stdout
        out.append("Zen Profile Backup Status")
        out.append(f"Profile path: {config.profile_path}")
        out.append(f"Backup directory: {config.local_path}")
        out.append(
            f"Cloud sync: enabled ({config.cloud_path})" if config.cloud_path else "Cloud sync: local only"
        )
        out.append(f"Retention: daily {config.daily_days} days, weekly {config.weekly_days} days")

        root = config.local_path
        if not root.exists():
            out.append("Backup directory not found. Run a backup or check configuration.")
            return
        if not is_readable_dir(root):
            out.append("Backup directory permission error.")
            result.stderr.append("Backup directory is not readable.")
            result.exit_code = 1
            return

        entries = list_archives(root)
        for kind in ArchiveKind:
            latest = latest_archive(entries, kind)
            out.append(
                f"Latest {kind}: {latest.name} ({format_size(latest.size)})"
                if latest
                else f"No {kind} backups yet"
            )

        sizes = {kind: directory_size(root / str(kind)) for kind in ArchiveKind}
        out.append(f"Disk usage total: {format_size(sum(sizes.values()))}")
        for kind, size in sizes.items():
            out.append(f"Disk usage {kind}: {format_size(size)}")
        out.append(_health_line(latest_archive(entries, ArchiveKind.DAILY), ctx))

        status = (scheduler or get_scheduler(ctx)).query()
        if not status.labels:
            out.append("Scheduled jobs: not installed")
            return
        all_active = all(status.state_of(label) == JobState.ACTIVE for label in status.labels)
        out.append(f"Scheduled jobs: {'active' if all_active else 'paused'}")
        out.append(f"Scheduler: {status.backend} ({status.mode})")
        out.extend(f"  {line}" for line in _job_lines(status))

    return _guarded(body)


# ── setup ──


def run_install(ctx: RuntimeContext, scheduler: SchedulerBackend | None = None) -> CommandResult:
    def body(result: CommandResult) -> None:
        installed = setup.install(ctx, scheduler)
        out = result.stdout
        if installed.profile_detected:
            out.append(f"Detected profile path: {installed.profile_path}")
        else:
            out.append("No Zen profile detected.")
            out.append(f"Using placeholder profile path: {installed.profile_path}")
            out.append(f"Edit {installed.config_path} to point at your profile.")
        out.append(f"Default backup directory: {installed.backup_path}")
        out.append(
            f"Cloud sync: {installed.cloud_path}" if installed.cloud_path else "Cloud sync: local only"
        )
        out.append(f"Settings written: {installed.config_path}")
        if installed.scheduler.installed:
            out.append("Scheduler installed.")
            out.extend(installed.scheduler.labels)
        result.stderr.extend(installed.hints)

    return _guarded(body)


def run_uninstall(
    ctx: RuntimeContext,
    purge_backups: bool = False,
    scheduler: SchedulerBackend | None = None,
) -> CommandResult:
    def body(result: CommandResult) -> None:
        removed = setup.uninstall(ctx, purge_backups, scheduler)
        if removed.backups_removed:
            result.stdout.append("Backup archives removed.")
        else:
            result.stderr.append(
                "Backup archives were left in place. "
                "Re-run with --purge-backups to remove them and free disk space."
            )
        result.stdout.append("Scheduled jobs removed.")
        result.stdout.append("Settings removed.")

    return _guarded(body)


def run_schedule(
    action: str,
    ctx: RuntimeContext,
    scheduler: SchedulerBackend | None = None,
) -> CommandResult:
    def body(result: CommandResult) -> None:
        backend = scheduler or get_scheduler(ctx)
        if action in ("start", "resume"):
            status = backend.start()
            result.stdout.append("Scheduled backups started.")
        elif action in ("stop", "pause"):
            status = backend.stop()
            result.stdout.append("Scheduled backups stopped.")
        elif action == "status":
            status = backend.query()
        else:
            raise ZenBackupError(f"unknown schedule action: {action}", code="ERR_USAGE", exit_code=2)
        result.stdout.extend(_job_lines(status))

    return _guarded(body)
