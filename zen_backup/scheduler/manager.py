"""Scheduler selection — maps the target platform to its backend and control plane."""

from __future__ import annotations

from loguru import logger

from zen_backup.context import Platform, RuntimeContext
from zen_backup.scheduler.base import SchedulerBackend
from zen_backup.scheduler.control import ControlPlane, SimulatedControlPlane, select_control_plane
from zen_backup.scheduler.launchd import LaunchdBackend
from zen_backup.scheduler.systemd import SystemdBackend
from zen_backup.scheduler.task_scheduler import TaskSchedulerBackend

BACKENDS: dict[Platform, type[SchedulerBackend]] = {
    Platform.DARWIN: LaunchdBackend,
    Platform.LINUX: SystemdBackend,
    Platform.WINDOWS: TaskSchedulerBackend,
}


def get_scheduler(ctx: RuntimeContext, control: ControlPlane | None = None) -> SchedulerBackend:
    """
    Build the backend for ``ctx.platform``.

    Without an explicit *control* plane the host one is used only when
    ``select_control_plane`` deems it safe; otherwise commands are simulated.
    """
    backend_cls = BACKENDS[ctx.platform]
    if control is None:
        probe = backend_cls(ctx, SimulatedControlPlane()).probe_command()
        control = select_control_plane(ctx, backend_cls.control_binary, probe)
        if isinstance(control, SimulatedControlPlane):
            logger.debug(f"Using simulated scheduler: {control.reason}")
    return backend_cls(ctx, control)
