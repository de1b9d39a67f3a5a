"""Archive naming — canonical names and the same-day collision policy."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from zen_backup.models.archive import ArchiveKind, ArchiveName


def build_archive_name(kind: ArchiveKind, now: datetime) -> ArchiveName:
    """Name for a *kind* archive taken at *now* (the UTC calendar day is used)."""
    return ArchiveName(kind=ArchiveKind(kind), date=now.astimezone(timezone.utc).date())


def next_archive_path(kind_dir: Path, kind: ArchiveKind, now: datetime) -> Path:
    """
    First free archive path in *kind_dir* for today.

    ``zen-backup-daily-2024-01-15.tar.gz`` if unused, otherwise
    ``…-2.tar.gz``, ``…-3.tar.gz`` and so on, so same-day backups never
    overwrite each other.
    """
    name = build_archive_name(kind, now)
    candidate = kind_dir / name.filename
    n = 2
    while candidate.exists():
        candidate = kind_dir / ArchiveName(name.kind, name.date, n).filename
        n += 1
    return candidate
