"""Scheduler backend base class — one implementation per OS scheduling facility.

Each backend owns two jobs (daily, weekly) and a definition directory.  Job
state is always recomputed from files on disk plus, when the control plane
is live, what the OS facility reports:

  <definition dir>/
    ├── <job definition files>        installed vs. not installed
    ├── .zen-backup-loaded            registered with the facility
    └── .disabled-<job label>         paused

The backend never decides *how* commands run; that is the control plane's
job (see ``zen_backup.scheduler.control``).
"""

from __future__ import annotations

import re
import shutil
import sys
from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger

from zen_backup.config import BackupConfiguration
from zen_backup.context import RuntimeContext
from zen_backup.errors import SchedulerError
from zen_backup.models.archive import ArchiveKind
from zen_backup.models.schedule import LiveJobFacts, ScheduledJob, SchedulerStatus
from zen_backup.scheduler.control import ControlPlane
from zen_backup.scheduler.state import resolve_job_state
from zen_backup.utils import UNRESOLVED_TOKEN

LOADED_MARKER = ".zen-backup-loaded"

# Words of a definition file: split on whitespace, quotes and XML brackets
_TOKEN_SPLIT = re.compile(r"[\s\"'<>=]+")


def disabled_marker_name(label: str) -> str:
    return f".disabled-{label}"


def program_argv(ctx: RuntimeContext) -> list[str]:
    """Absolute command that runs this tool: the installed script, else the interpreter."""
    script = shutil.which("zen-backup", path=ctx.env.get("PATH"))
    if script:
        return [str(Path(script).resolve())]
    return [str(Path(sys.executable).resolve()), "-m", "zen_backup.cli"]


def job_argv(config: BackupConfiguration, kind: ArchiveKind, ctx: RuntimeContext) -> list[str]:
    return [*program_argv(ctx), "--config", str(config.config_path), "backup", str(kind)]


def ensure_concrete(body: str, path: Path) -> None:
    """Refuse to persist a definition that still contains ``~``/``$VAR``/``%VAR%`` tokens."""
    for token in _TOKEN_SPLIT.split(body):
        if token and UNRESOLVED_TOKEN.search(token):
            raise SchedulerError(f"unresolved placeholder {token!r} in {path.name}")


class SchedulerBackend(ABC):
    """
    Abstract base for one OS scheduling facility.

    Subclasses describe the job definitions and the control verbs; the
    install/uninstall/start/stop/query state machine lives here so every
    platform converges on the same states.
    """

    #: Binary that must be on PATH for the host control plane
    control_binary: str = ""

    def __init__(self, ctx: RuntimeContext, control: ControlPlane) -> None:
        self._ctx = ctx
        self._control = control

    # ── Required interface ──

    @property
    @abstractmethod
    def name(self) -> str:
        """Facility identifier (e.g. ``'launchd'``)."""
        ...

    @property
    @abstractmethod
    def definition_dir(self) -> Path:
        ...

    @property
    @abstractmethod
    def jobs(self) -> list[ScheduledJob]:
        """The daily and weekly job, in that order."""
        ...

    @abstractmethod
    def definition_path(self, job: ScheduledJob) -> Path:
        """The file whose presence means *job* is installed."""
        ...

    @abstractmethod
    def render_definitions(self, job: ScheduledJob, config: BackupConfiguration) -> dict[Path, str]:
        """All files to write for *job*, path → content."""
        ...

    @abstractmethod
    def register(self, job: ScheduledJob) -> None:
        """Hand freshly written definitions to the facility (errors propagate)."""
        ...

    @abstractmethod
    def deregister(self, job: ScheduledJob) -> None:
        """Remove *job* from the facility; failures are ignored."""
        ...

    @abstractmethod
    def enable(self, job: ScheduledJob) -> None:
        ...

    @abstractmethod
    def disable(self, job: ScheduledJob) -> None:
        ...

    @abstractmethod
    def live_facts(self, job: ScheduledJob) -> LiveJobFacts:
        """Ask the facility about *job*; only called on a live control plane."""
        ...

    @abstractmethod
    def probe_command(self) -> list[str]:
        """Cheap command that succeeds only when the facility is reachable."""
        ...

    # ── Optional hooks ──

    def reload(self, check: bool) -> None:
        """Tell the facility definitions changed on disk (systemd needs this)."""

    def extra_files(self, job: ScheduledJob) -> list[Path]:
        """Definition files besides ``definition_path`` that uninstall must delete."""
        return []

    # ── Helpers ──

    @property
    def control(self) -> ControlPlane:
        return self._control

    def _marker(self, name: str) -> Path:
        return self.definition_dir / name

    def _write(self, path: Path, body: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(body, encoding="utf-8")

    def _set_paused_markers(self, paused: bool) -> None:
        for job in self.jobs:
            marker = self._marker(disabled_marker_name(job.label))
            if paused:
                self._write(marker, "1")
            else:
                marker.unlink(missing_ok=True)
        self._write(self._marker(LOADED_MARKER), "1")

    def _all_defined(self) -> bool:
        return all(self.definition_path(job).exists() for job in self.jobs)

    # ── State machine ──

    def install(self, config: BackupConfiguration) -> SchedulerStatus:
        """Write both definitions, (re)register them and clear any paused marker."""
        rendered = {job.label: self.render_definitions(job, config) for job in self.jobs}
        for files in rendered.values():
            for path, body in files.items():
                ensure_concrete(body, path)

        for files in rendered.values():
            for path, body in files.items():
                self._write(path, body)
        self.reload(check=True)
        for job in self.jobs:
            self.register(job)
        self._set_paused_markers(False)
        logger.info(f"Installed {self.name} jobs ({self._control.mode})")
        return self.query()

    def uninstall(self) -> SchedulerStatus:
        """Deregister and delete every definition and marker. Never blocked by the facility."""
        for job in self.jobs:
            try:
                self.deregister(job)
            except SchedulerError as e:
                logger.debug(f"Ignoring deregister failure for {job.label}: {e}")

        for job in self.jobs:
            for path in [self.definition_path(job), *self.extra_files(job)]:
                path.unlink(missing_ok=True)
            self._marker(disabled_marker_name(job.label)).unlink(missing_ok=True)
        self._marker(LOADED_MARKER).unlink(missing_ok=True)

        try:
            self.reload(check=False)
        except SchedulerError as e:
            logger.debug(f"Ignoring reload failure: {e}")
        logger.info(f"Uninstalled {self.name} jobs ({self._control.mode})")
        return self.query()

    def start(self) -> SchedulerStatus:
        """Resume both jobs. A no-op when they are not installed."""
        if not self._all_defined():
            return self.query()
        for job in self.jobs:
            self.enable(job)
        self._set_paused_markers(False)
        return self.query()

    def stop(self) -> SchedulerStatus:
        """Pause both jobs. A no-op when they are not installed."""
        if not self._all_defined():
            return self.query()
        for job in self.jobs:
            self.disable(job)
        self._set_paused_markers(True)
        return self.query()

    def query(self) -> SchedulerStatus:
        loaded = self._marker(LOADED_MARKER).exists()
        status = SchedulerStatus(backend=self.name, mode=self._control.mode, loaded=loaded)
        for job in self.jobs:
            defined = self.definition_path(job).exists()
            live = self.live_facts(job) if defined and self._control.live else None
            status.states[job.label] = resolve_job_state(
                definition_exists=defined,
                disabled_marker=self._marker(disabled_marker_name(job.label)).exists(),
                loaded_marker=loaded,
                live=live,
            )
        return status
