"""Retention pruner — delete archives older than the configured age, by filename date."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from zen_backup.models.archive import ArchiveKind, ArchiveName

_SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class PruneResult:
    deleted: list[Path] = field(default_factory=list)


def age_in_days(name: ArchiveName, now: datetime) -> int:
    """Whole days between the archive's UTC midnight and *now*, floored."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    delta = now - name.midnight
    return int(delta.total_seconds() // _SECONDS_PER_DAY)


def prune_archives(
    root: Path,
    kind: ArchiveKind,
    retention_days: int,
    now: datetime,
) -> PruneResult:
    """
    Delete ``<root>/<kind>/`` archives whose age exceeds *retention_days*.

    An archive exactly *retention_days* old is kept.  Files outside the
    archive naming grammar are never touched, and a missing directory simply
    has nothing to prune.
    """
    result = PruneResult()
    kind_dir = root / str(kind)
    if not kind_dir.is_dir():
        return result

    for path in sorted(kind_dir.iterdir()):
        if not path.is_file():
            continue
        parsed = ArchiveName.parse(path.name)
        if parsed is None:
            continue
        if age_in_days(parsed, now) <= retention_days:
            continue
        try:
            path.unlink()
        except OSError as e:
            logger.warning(f"Failed to prune {path.name}: {e}")
            continue
        logger.debug(f"Pruned {kind} archive {path.name}")
        result.deleted.append(path)

    return result
