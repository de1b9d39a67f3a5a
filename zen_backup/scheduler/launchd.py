"""launchd backend — per-user LaunchAgents driven through ``launchctl``."""

from __future__ import annotations

import os
import plistlib
import re
from pathlib import Path

from zen_backup.config import BackupConfiguration
from zen_backup.models.archive import ArchiveKind
from zen_backup.models.schedule import LiveJobFacts, ScheduledJob
from zen_backup.scheduler.base import SchedulerBackend, job_argv

LABEL_PREFIX = "com.prometheas.zen-backup"

_DISABLED_LINE = re.compile(r'"([^"]+)"\s*=>\s*(true|false|disabled|enabled)')


class LaunchdBackend(SchedulerBackend):
    """macOS LaunchAgents in ``~/Library/LaunchAgents``."""

    control_binary = "launchctl"

    @property
    def name(self) -> str:
        return "launchd"

    @property
    def definition_dir(self) -> Path:
        return self._ctx.home / "Library" / "LaunchAgents"

    @property
    def jobs(self) -> list[ScheduledJob]:
        return [ScheduledJob(kind, f"{LABEL_PREFIX}.{kind}") for kind in ArchiveKind]

    @property
    def domain(self) -> str:
        uid = getattr(os, "getuid", lambda: 0)()
        return f"gui/{uid}"

    def probe_command(self) -> list[str]:
        return ["launchctl", "print", self.domain]

    def definition_path(self, job: ScheduledJob) -> Path:
        return self.definition_dir / f"{job.label}.plist"

    def render_definitions(self, job: ScheduledJob, config: BackupConfiguration) -> dict[Path, str]:
        if job.kind == ArchiveKind.DAILY:
            interval = {"Hour": config.daily_time.hour, "Minute": config.daily_time.minute}
        else:
            interval = {
                "Weekday": config.weekday_number,
                "Hour": config.weekly_time.hour,
                "Minute": config.weekly_time.minute,
            }
        log_path = str(config.local_path / "scheduler.log")
        plist = {
            "Label": job.label,
            "ProgramArguments": job_argv(config, job.kind, self._ctx),
            "StartCalendarInterval": interval,
            "StandardOutPath": log_path,
            "StandardErrorPath": log_path,
            "RunAtLoad": False,
        }
        body = plistlib.dumps(plist, sort_keys=False).decode("utf-8")
        return {self.definition_path(job): body}

    # ── launchctl verbs ──

    def register(self, job: ScheduledJob) -> None:
        # A stale registration makes bootstrap fail, so clear it first
        self._control.run(["launchctl", "bootout", f"{self.domain}/{job.label}"])
        self._control.run(["launchctl", "enable", f"{self.domain}/{job.label}"], check=True)
        self._control.run(
            ["launchctl", "bootstrap", self.domain, str(self.definition_path(job))], check=True
        )

    def deregister(self, job: ScheduledJob) -> None:
        self._control.run(["launchctl", "bootout", f"{self.domain}/{job.label}"])

    def enable(self, job: ScheduledJob) -> None:
        self._control.run(["launchctl", "enable", f"{self.domain}/{job.label}"], check=True)
        loaded = self._control.run(["launchctl", "print", f"{self.domain}/{job.label}"])
        if not loaded.ok:
            self._control.run(
                ["launchctl", "bootstrap", self.domain, str(self.definition_path(job))], check=True
            )

    def disable(self, job: ScheduledJob) -> None:
        self._control.run(["launchctl", "disable", f"{self.domain}/{job.label}"], check=True)

    def live_facts(self, job: ScheduledJob) -> LiveJobFacts:
        enabled: bool | None = None
        listing = self._control.run(["launchctl", "print-disabled", self.domain])
        if listing.ok:
            enabled = True
            for label, value in _DISABLED_LINE.findall(listing.stdout):
                if label == job.label:
                    enabled = value not in ("true", "disabled")
        printed = self._control.run(["launchctl", "print", f"{self.domain}/{job.label}"])
        loaded = None if printed.timed_out else printed.ok
        return LiveJobFacts(enabled=enabled, loaded=loaded)
