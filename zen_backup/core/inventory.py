"""Archive inventory — what is on disk under a backup root."""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path

from zen_backup.models.archive import ARCHIVE_SUFFIX, ArchiveEntry, ArchiveKind, ArchiveName


def chronological_key(entry: ArchiveEntry) -> tuple[date, int, str]:
    """Order by filename date, then by same-day counter (the unsuffixed archive is first)."""
    parsed = ArchiveName.parse(entry.name)
    if parsed is None:
        return (date.min, 0, entry.name)
    return (parsed.date, parsed.disambiguator or 1, entry.name)


def list_archives(root: Path) -> list[ArchiveEntry]:
    """All ``*.tar.gz`` files under ``<root>/daily`` and ``<root>/weekly``, oldest first."""
    entries: list[ArchiveEntry] = []
    for kind in ArchiveKind:
        kind_dir = root / str(kind)
        if not kind_dir.is_dir():
            continue
        for path in kind_dir.iterdir():
            if not path.is_file() or not path.name.endswith(ARCHIVE_SUFFIX):
                continue
            parsed = ArchiveName.parse(path.name)
            entries.append(
                ArchiveEntry(
                    kind=kind,
                    name=path.name,
                    path=path,
                    size=path.stat().st_size,
                    date=parsed.date if parsed else None,
                )
            )
    return sorted(entries, key=lambda e: (str(e.kind), chronological_key(e)))


def latest_archive(entries: list[ArchiveEntry], kind: ArchiveKind) -> ArchiveEntry | None:
    """Newest archive of *kind* according to its filename."""
    of_kind = sorted((e for e in entries if e.kind == kind), key=chronological_key)
    return of_kind[-1] if of_kind else None


def directory_size(path: Path) -> int:
    """Total size of regular files below *path*; 0 if it does not exist."""
    if not path.is_dir():
        return 0
    return sum(f.stat().st_size for f in path.rglob("*") if f.is_file())


def is_readable_dir(path: Path) -> bool:
    return os.access(path, os.R_OK | os.X_OK)
