"""Control planes — how scheduler commands are executed (for real, or only recorded)."""

from __future__ import annotations

import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from loguru import logger

from zen_backup.context import RuntimeContext
from zen_backup.errors import SchedulerError
from zen_backup.utils import CommandOutcome, run_bounded

# Upper bound for any single scheduler control command
CONTROL_TIMEOUT = 15.0
PROBE_TIMEOUT = 5.0


class ControlPlane(ABC):
    """Executes the platform's scheduler control commands."""

    #: True when commands reach the real OS facility and its answers can be trusted
    live: bool = False

    @property
    @abstractmethod
    def mode(self) -> str:
        """``"host"`` or ``"simulated"``."""
        ...

    @abstractmethod
    def run(self, args: Sequence[str], check: bool = False) -> CommandOutcome:
        """Run one control command; with ``check`` a failure raises ``SchedulerError``."""
        ...


class HostControlPlane(ControlPlane):
    """Runs the real control binary with a bounded wait."""

    live = True

    def __init__(self, timeout: float = CONTROL_TIMEOUT) -> None:
        self._timeout = timeout

    @property
    def mode(self) -> str:
        return "host"

    def run(self, args: Sequence[str], check: bool = False) -> CommandOutcome:
        outcome = run_bounded(args, self._timeout)
        logger.debug(f"{' '.join(outcome.args)} -> {outcome.returncode}")
        if check and not outcome.ok:
            detail = "timed out" if outcome.timed_out else (outcome.stderr or outcome.stdout).strip()
            raise SchedulerError(f"{' '.join(outcome.args)} failed: {detail or outcome.returncode}")
        return outcome


class SimulatedControlPlane(ControlPlane):
    """
    Records commands instead of running them.

    Used when the real facility is missing, unreachable or belongs to a
    different user than the one this invocation targets; job state then
    lives entirely in definition and marker files.
    """

    live = False

    def __init__(self, reason: str = "") -> None:
        self.reason = reason
        self.commands: list[list[str]] = []

    @property
    def mode(self) -> str:
        return "simulated"

    def run(self, args: Sequence[str], check: bool = False) -> CommandOutcome:
        argv = [str(a) for a in args]
        self.commands.append(argv)
        return CommandOutcome(args=argv, returncode=0)


def real_home() -> Path:
    """Home directory of the user this process actually runs as."""
    if os.name == "posix":
        import pwd

        return Path(pwd.getpwuid(os.getuid()).pw_dir)
    return Path(os.environ.get("USERPROFILE") or Path.home())


def _same_path(a: Path, b: Path) -> bool:
    try:
        return a.resolve() == b.resolve()
    except OSError:
        return False


def select_control_plane(
    ctx: RuntimeContext,
    binary: str,
    probe: Sequence[str],
) -> ControlPlane:
    """
    Pick the host control plane only when it is safe and able to work.

    Requires the control *binary* on ``PATH``, the target platform to be the
    running one, the context's home to be the real user's home, and the
    *probe* command to succeed in time.  ``ZEN_BACKUP_SCHEDULER_MODE=simulated``
    forces the simulated plane.
    """
    if ctx.env.get("ZEN_BACKUP_SCHEDULER_MODE", "").strip().lower() == "simulated":
        return SimulatedControlPlane("forced by ZEN_BACKUP_SCHEDULER_MODE")
    if not ctx.is_host_platform:
        return SimulatedControlPlane(f"target platform {ctx.platform} is not the host")
    if not shutil.which(binary, path=ctx.env.get("PATH")):
        return SimulatedControlPlane(f"{binary} not found")
    if not _same_path(ctx.home, real_home()):
        return SimulatedControlPlane("home directory differs from the logged-in user")
    outcome = run_bounded(probe, PROBE_TIMEOUT)
    if not outcome.ok:
        return SimulatedControlPlane(f"{binary} probe failed")
    return HostControlPlane()
