"""Windows Task Scheduler backend — tasks driven through ``schtasks``."""

from __future__ import annotations

import csv
import io
import json
import subprocess
from pathlib import Path

from zen_backup.config import BackupConfiguration
from zen_backup.models.archive import ArchiveKind
from zen_backup.models.schedule import LiveJobFacts, ScheduledJob
from zen_backup.scheduler.base import SchedulerBackend, job_argv

TASK_NAMES = {ArchiveKind.DAILY: "ZenBackupDaily", ArchiveKind.WEEKLY: "ZenBackupWeekly"}


class TaskSchedulerBackend(SchedulerBackend):
    """
    Windows scheduled tasks.

    Task Scheduler keeps its definitions in its own store, so the JSON file
    written here is a descriptor: it records what was registered and serves
    as the "installed" fact for the state machine.
    """

    control_binary = "schtasks"

    @property
    def name(self) -> str:
        return "task-scheduler"

    @property
    def definition_dir(self) -> Path:
        return self._ctx.app_data / "zen-profile-backup" / "task-scheduler"

    @property
    def jobs(self) -> list[ScheduledJob]:
        return [ScheduledJob(kind, TASK_NAMES[kind]) for kind in ArchiveKind]

    def probe_command(self) -> list[str]:
        return ["schtasks", "/Query", "/FO", "CSV", "/NH"]

    def definition_path(self, job: ScheduledJob) -> Path:
        return self.definition_dir / f"{job.label}.json"

    def _descriptor(self, job: ScheduledJob, config: BackupConfiguration) -> dict:
        if job.kind == ArchiveKind.DAILY:
            trigger = {"schedule": "DAILY", "start_time": str(config.daily_time)}
        else:
            trigger = {
                "schedule": "WEEKLY",
                "day": config.weekly_day[:3].upper(),
                "start_time": str(config.weekly_time),
            }
        return {
            "task_name": job.label,
            "command": subprocess.list2cmdline(job_argv(config, job.kind, self._ctx)),
            "trigger": trigger,
        }

    def render_definitions(self, job: ScheduledJob, config: BackupConfiguration) -> dict[Path, str]:
        body = json.dumps(self._descriptor(job, config), ensure_ascii=False, indent=2)
        return {self.definition_path(job): body + "\n"}

    # ── schtasks verbs ──

    def register(self, job: ScheduledJob) -> None:
        with open(self.definition_path(job), encoding="utf-8") as f:
            descriptor = json.load(f)
        trigger = descriptor["trigger"]
        args = [
            "schtasks", "/Create", "/F",
            "/TN", job.label,
            "/TR", descriptor["command"],
            "/SC", trigger["schedule"],
            "/ST", trigger["start_time"],
        ]
        if "day" in trigger:
            args += ["/D", trigger["day"]]
        self._control.run(args, check=True)

    def deregister(self, job: ScheduledJob) -> None:
        self._control.run(["schtasks", "/Delete", "/F", "/TN", job.label])

    def enable(self, job: ScheduledJob) -> None:
        self._control.run(["schtasks", "/Change", "/TN", job.label, "/ENABLE"], check=True)

    def disable(self, job: ScheduledJob) -> None:
        self._control.run(["schtasks", "/Change", "/TN", job.label, "/DISABLE"], check=True)

    def live_facts(self, job: ScheduledJob) -> LiveJobFacts:
        outcome = self._control.run(["schtasks", "/Query", "/TN", job.label, "/FO", "CSV", "/NH"])
        if outcome.timed_out:
            return LiveJobFacts()
        if not outcome.ok:
            return LiveJobFacts(loaded=False)
        rows = [row for row in csv.reader(io.StringIO(outcome.stdout)) if row]
        if not rows:
            return LiveJobFacts(loaded=False)
        # "TaskName","Next Run Time","Status"
        status = rows[0][-1].strip().lower()
        return LiveJobFacts(enabled=status != "disabled", loaded=True)
