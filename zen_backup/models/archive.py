"""Archive models — kind, canonical name and on-disk inventory entry."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import StrEnum
from pathlib import Path

ARCHIVE_PREFIX = "zen-backup"
ARCHIVE_SUFFIX = ".tar.gz"

_NAME_RE = re.compile(
    r"^zen-backup-(?P<kind>daily|weekly)-(?P<date>\d{4}-\d{2}-\d{2})(?:-(?P<n>\d+))?\.tar\.gz$"
)


class ArchiveKind(StrEnum):
    """Backup cadence."""

    DAILY = "daily"
    WEEKLY = "weekly"


@dataclass(frozen=True)
class ArchiveName:
    """
    Parsed archive filename.

    The filename is the only source of an archive's date; file modification
    times are never consulted.
    """

    kind: ArchiveKind
    date: date
    disambiguator: int | None = None

    @property
    def filename(self) -> str:
        suffix = f"-{self.disambiguator}" if self.disambiguator else ""
        return f"{ARCHIVE_PREFIX}-{self.kind}-{self.date.isoformat()}{suffix}{ARCHIVE_SUFFIX}"

    @property
    def midnight(self) -> datetime:
        """Start of the archive's day in UTC."""
        return datetime.combine(self.date, time.min, tzinfo=timezone.utc)

    @classmethod
    def parse(cls, name: str) -> ArchiveName | None:
        """Parse a filename, returning None for anything outside the archive grammar."""
        match = _NAME_RE.match(name)
        if not match:
            return None
        try:
            day = date.fromisoformat(match.group("date"))
        except ValueError:
            return None
        n = match.group("n")
        return cls(ArchiveKind(match.group("kind")), day, int(n) if n else None)


@dataclass
class ArchiveEntry:
    """An archive discovered on disk."""

    kind: ArchiveKind
    name: str
    path: Path
    size: int = 0
    date: date | None = None
