"""systemd backend — user timers driven through ``systemctl --user``."""

from __future__ import annotations

from pathlib import Path

from zen_backup.config import BackupConfiguration
from zen_backup.models.archive import ArchiveKind
from zen_backup.models.schedule import LiveJobFacts, ScheduledJob
from zen_backup.scheduler.base import SchedulerBackend, job_argv

UNIT_PREFIX = "zen-backup"


def quote_exec_arg(arg: str) -> str:
    """Quote one ``ExecStart=`` word; ``%`` is a specifier character and must be doubled."""
    escaped = arg.replace("%", "%%")
    if escaped and not any(c in escaped for c in ' \t"\'\\;$'):
        return escaped
    escaped = escaped.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class SystemdBackend(SchedulerBackend):
    """Linux user units in ``$XDG_CONFIG_HOME/systemd/user``."""

    control_binary = "systemctl"

    @property
    def name(self) -> str:
        return "systemd"

    @property
    def definition_dir(self) -> Path:
        xdg = self._ctx.env.get("XDG_CONFIG_HOME", "").strip()
        base = Path(xdg) if xdg and Path(xdg).is_absolute() else self._ctx.home / ".config"
        return base / "systemd" / "user"

    @property
    def jobs(self) -> list[ScheduledJob]:
        return [ScheduledJob(kind, f"{UNIT_PREFIX}-{kind}.timer") for kind in ArchiveKind]

    def probe_command(self) -> list[str]:
        return ["systemctl", "--user", "show-environment"]

    def definition_path(self, job: ScheduledJob) -> Path:
        return self.definition_dir / job.label

    def service_path(self, job: ScheduledJob) -> Path:
        return self.definition_dir / job.label.replace(".timer", ".service")

    def extra_files(self, job: ScheduledJob) -> list[Path]:
        return [self.service_path(job)]

    def render_definitions(self, job: ScheduledJob, config: BackupConfiguration) -> dict[Path, str]:
        if job.kind == ArchiveKind.DAILY:
            on_calendar = f"*-*-* {config.daily_time}:00"
        else:
            on_calendar = f"{config.weekly_day[:3]} *-*-* {config.weekly_time}:00"
        exec_start = " ".join(quote_exec_arg(a) for a in job_argv(config, job.kind, self._ctx))
        service = (
            "[Unit]\n"
            f"Description=Zen profile {job.kind} backup\n"
            "\n"
            "[Service]\n"
            "Type=oneshot\n"
            f"ExecStart={exec_start}\n"
        )
        timer = (
            "[Unit]\n"
            f"Description=Run Zen profile {job.kind} backup\n"
            "\n"
            "[Timer]\n"
            f"OnCalendar={on_calendar}\n"
            "Persistent=true\n"
            f"Unit={self.service_path(job).name}\n"
            "\n"
            "[Install]\n"
            "WantedBy=timers.target\n"
        )
        return {self.service_path(job): service, self.definition_path(job): timer}

    # ── systemctl verbs ──

    def _systemctl(self, *args: str, check: bool = False):
        return self._control.run(["systemctl", "--user", *args], check=check)

    def reload(self, check: bool) -> None:
        self._systemctl("daemon-reload", check=check)

    def register(self, job: ScheduledJob) -> None:
        self._systemctl("enable", "--now", job.label, check=True)

    def deregister(self, job: ScheduledJob) -> None:
        self._systemctl("disable", "--now", job.label)

    def enable(self, job: ScheduledJob) -> None:
        self._systemctl("enable", "--now", job.label, check=True)

    def disable(self, job: ScheduledJob) -> None:
        self._systemctl("disable", "--now", job.label, check=True)

    def live_facts(self, job: ScheduledJob) -> LiveJobFacts:
        enabled_out = self._systemctl("is-enabled", job.label)
        active_out = self._systemctl("is-active", job.label)
        enabled = None if enabled_out.timed_out else enabled_out.stdout.strip() == "enabled"
        active = None if active_out.timed_out else active_out.stdout.strip() == "active"
        return LiveJobFacts(enabled=enabled, loaded=active)
