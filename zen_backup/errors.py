"""Exception hierarchy — every failure a command can report, with its exit code."""

from __future__ import annotations


class ZenBackupError(Exception):
    """Base error. ``code`` is a stable identifier, ``exit_code`` the process status."""

    code = "ERR_ZEN_BACKUP"

    def __init__(self, message: str, code: str | None = None, exit_code: int = 1) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.exit_code = exit_code

    def __str__(self) -> str:
        return self.message


# ── Precondition errors: nothing was mutated ──


class ConfigNotFoundError(ZenBackupError):
    code = "ERR_CONFIG_NOT_FOUND"


class ProfileNotFoundError(ZenBackupError):
    code = "ERR_PROFILE_NOT_FOUND"


class BackupDirNotFoundError(ZenBackupError):
    code = "ERR_BACKUP_DIR_NOT_FOUND"


class ArchiveNotFoundError(ZenBackupError):
    code = "ERR_ARCHIVE_NOT_FOUND"


class BrowserRunningError(ZenBackupError):
    code = "ERR_BROWSER_RUNNING"


# ── Configuration ──


class ConfigError(ZenBackupError):
    code = "ERR_CONFIG_SCHEMA"


# ── Integrity errors: no partial artifact is left behind ──


class ArchiveError(ZenBackupError):
    code = "ERR_ARCHIVE_CREATE"


class ArchiveInvalidError(ZenBackupError):
    code = "ERR_ARCHIVE_INVALID"


class SqliteIntegrityError(ZenBackupError):
    code = "ERR_SQLITE_INTEGRITY"


# ── Platform ──


class SchedulerError(ZenBackupError):
    code = "ERR_SCHEDULER"
