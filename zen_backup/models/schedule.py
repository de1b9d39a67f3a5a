"""Scheduler models — job identity, lifecycle state and status snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from zen_backup.models.archive import ArchiveKind


class JobState(StrEnum):
    """Derived lifecycle state of one scheduled job."""

    NOT_INSTALLED = "not_installed"
    ACTIVE = "active"
    PAUSED = "paused"


@dataclass(frozen=True)
class ScheduledJob:
    """One recurring job as a given platform names it."""

    kind: ArchiveKind
    label: str


@dataclass(frozen=True)
class LiveJobFacts:
    """
    What the host scheduling facility reports for a job.

    ``None`` means "unknown", letting marker files decide.
    """

    enabled: bool | None = None
    loaded: bool | None = None


@dataclass
class SchedulerStatus:
    """Query result covering both jobs."""

    backend: str
    mode: str
    states: dict[str, JobState] = field(default_factory=dict)
    loaded: bool = False

    @property
    def labels(self) -> list[str]:
        """Labels of jobs that have a definition installed."""
        return [label for label, state in self.states.items() if state != JobState.NOT_INSTALLED]

    @property
    def installed(self) -> bool:
        return bool(self.states) and self.loaded and all(
            state != JobState.NOT_INSTALLED for state in self.states.values()
        )

    def state_of(self, label: str) -> JobState:
        return self.states.get(label, JobState.NOT_INSTALLED)
