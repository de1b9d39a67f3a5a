"""Tests for the command orchestrators and the CLI front end."""

from __future__ import annotations

import io
import tarfile
from dataclasses import replace
from pathlib import Path
from typing import Iterator

import pytest
from loguru import logger

from zen_backup import cli, commands
from zen_backup.commands import (
    run_backup,
    run_install,
    run_list,
    run_restore,
    run_schedule,
    run_status,
    run_uninstall,
)
from zen_backup.config import resolve_config_path
from zen_backup.context import RuntimeContext


@pytest.fixture
def installed(ctx: RuntimeContext, profile: Path) -> RuntimeContext:
    result = run_install(ctx)
    assert result.exit_code == 0, result.stderr
    return ctx


class TestInstall:
    def test_detects_profile_and_writes_settings(self, ctx: RuntimeContext, profile: Path) -> None:
        result = run_install(ctx)

        assert result.exit_code == 0
        assert f"Detected profile path: {profile}" in result.stdout
        assert "Scheduler installed." in result.stdout
        assert "zen-backup-daily.timer" in result.stdout
        assert resolve_config_path(ctx).exists()

    def test_profile_override_and_custom_cloud(self, ctx: RuntimeContext, tmp_path: Path) -> None:
        custom = tmp_path / "elsewhere"
        env = {
            **ctx.env,
            "ZEN_BACKUP_PROFILE_PATH": str(custom),
            "ZEN_BACKUP_CLOUD_CUSTOM": str(tmp_path / "cloud"),
        }
        result = run_install(replace(ctx, env=env))
        assert f"Detected profile path: {custom}" in result.stdout
        assert f"Cloud sync: {tmp_path / 'cloud'}" in result.stdout

    def test_cloud_none(self, ctx: RuntimeContext, home: Path) -> None:
        (home / "Dropbox").mkdir()
        result = run_install(replace(ctx, env={**ctx.env, "ZEN_BACKUP_CLOUD": "none"}))
        assert "Cloud sync: local only" in result.stdout

    def test_detects_cloud_folder(self, ctx: RuntimeContext, home: Path) -> None:
        (home / "Dropbox").mkdir()
        result = run_install(ctx)
        assert f"Cloud sync: {home / 'Dropbox'}" in result.stdout

    def test_no_profile_found(self, ctx: RuntimeContext) -> None:
        result = run_install(ctx)
        assert result.exit_code == 0
        assert "No Zen profile detected." in result.stdout


class TestBackupAndRestore:
    def test_backup_then_list_then_restore(self, installed: RuntimeContext) -> None:
        backup = run_backup("daily", installed)
        assert backup.exit_code == 0, backup.stderr
        assert backup.stdout[0].startswith("Created daily backup: ")

        listing = run_list(installed)
        assert listing.stdout[0] == "daily:"
        assert listing.stdout[1].startswith("  zen-backup-daily-2024-01-15.tar.gz (")
        assert listing.stdout[-1] == "weekly:"

        restored = run_restore("zen-backup-daily-2024-01-15.tar.gz", installed)
        assert restored.exit_code == 0, restored.stderr
        assert restored.stdout[1].startswith("Pre-restore backup: ")

    def test_backup_without_config(self, ctx: RuntimeContext) -> None:
        result = run_backup("daily", ctx)
        assert result.exit_code == 1
        assert result.stderr[0].startswith("config file not found")

    def test_restore_refused_while_browser_runs(self, installed: RuntimeContext) -> None:
        run_backup("daily", installed)
        running = replace(installed, env={**installed.env, "ZEN_BACKUP_BROWSER_RUNNING": "1"})
        result = run_restore("zen-backup-daily-2024-01-15.tar.gz", running)
        assert result.exit_code == 1
        assert "must be closed" in result.stderr[0]

    def test_restore_damaged_archive(self, installed: RuntimeContext, home: Path) -> None:
        run_backup("daily", installed)
        archive = home / "zen-backups" / "daily" / "zen-backup-daily-2024-01-15.tar.gz"
        data = bytearray(archive.read_bytes())
        middle = len(data) // 2
        for i in range(middle, min(middle + 64, len(data))):
            data[i] ^= 0xFF
        archive.write_bytes(bytes(data))

        result = run_restore(archive.name, installed)

        assert result.exit_code == 1
        assert result.stderr == [f"invalid or corrupted archive: {archive.name}"]

    def test_restore_integrity_failure(self, installed: RuntimeContext, home: Path) -> None:
        archive = home / "zen-backups" / "daily" / "zen-backup-daily-2024-01-14.tar.gz"
        archive.parent.mkdir(parents=True)
        data = b"garbage, not sqlite " * 50
        with tarfile.open(archive, "w:gz") as tar:
            info = tarfile.TarInfo("places.sqlite")
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))

        result = run_restore(archive.name, installed)

        assert result.exit_code == 1
        assert result.stderr == ["integrity check failed after restore: places.sqlite"]
        assert (home / ".zen" / "default.pre-restore-2024-01-15" / "prefs.js").exists()
        log = (home / "zen-backups" / "backup.log").read_text(encoding="utf-8")
        assert "ERROR: integrity check failed after restore: places.sqlite" in log

    def test_list_missing_backup_dir(self, installed: RuntimeContext) -> None:
        result = run_list(installed)
        assert result.exit_code == 1
        assert result.stderr[0].startswith("backup directory not found")

    def test_list_empty(self, installed: RuntimeContext, home: Path) -> None:
        (home / "zen-backups").mkdir()
        assert run_list(installed).stdout == ["No backups found (empty backup directory)."]


class TestStatus:
    def test_not_installed(self, ctx: RuntimeContext) -> None:
        assert run_status(ctx).stdout[0] == "Not installed"

    def test_after_backup(self, installed: RuntimeContext) -> None:
        run_backup("weekly", installed)
        out = run_status(installed).stdout
        assert out[0] == "Zen Profile Backup Status"
        assert "Cloud sync: local only" in out
        assert "No daily backups yet" in out
        assert any(line.startswith("Latest weekly: zen-backup-weekly-2024-01-15.tar.gz (") for line in out)
        assert "Disk usage daily: 0 B" in out
        assert "No backups yet. Run a backup." in out
        assert "Scheduled jobs: active" in out
        assert "  zen-backup-daily.timer: active" in out

    def test_disk_usage_and_recent_daily(self, installed: RuntimeContext, home: Path) -> None:
        daily = home / "zen-backups" / "daily"
        daily.mkdir(parents=True)
        (daily / "zen-backup-daily-2024-01-14.tar.gz").write_bytes(b"x" * 2048)
        weekly = home / "zen-backups" / "weekly"
        weekly.mkdir()
        (weekly / "zen-backup-weekly-2024-01-07.tar.gz").write_bytes(b"x" * 1024)

        out = run_status(installed).stdout

        assert "Latest daily: zen-backup-daily-2024-01-14.tar.gz (2.0 KB)" in out
        assert "Disk usage total: 3.0 KB" in out
        assert "Disk usage daily: 2.0 KB" in out
        assert "Disk usage weekly: 1.0 KB" in out
        assert "Health: recent daily backup exists." in out

    def test_stale_daily(self, installed: RuntimeContext, home: Path) -> None:
        daily = home / "zen-backups" / "daily"
        daily.mkdir(parents=True)
        (daily / "zen-backup-daily-2024-01-10.tar.gz").write_bytes(b"old")
        assert "Warning: latest daily backup is stale." in run_status(installed).stdout

    def test_paused_jobs(self, installed: RuntimeContext, home: Path) -> None:
        (home / "zen-backups").mkdir()
        run_schedule("pause", installed)
        assert "Scheduled jobs: paused" in run_status(installed).stdout

    def test_unreadable_backup_dir(
        self, installed: RuntimeContext, home: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (home / "zen-backups").mkdir()
        monkeypatch.setattr(commands, "is_readable_dir", lambda _path: False)

        result = run_status(installed)

        assert result.exit_code == 1
        assert result.stdout[-1] == "Backup directory permission error."
        assert result.stderr == ["Backup directory is not readable."]

    def test_missing_backup_dir(self, installed: RuntimeContext) -> None:
        result = run_status(installed)
        assert result.exit_code == 0
        assert result.stdout[-1] == "Backup directory not found. Run a backup or check configuration."


class TestSchedule:
    def test_pause_and_resume(self, installed: RuntimeContext) -> None:
        paused = run_schedule("pause", installed)
        assert paused.stdout == [
            "Scheduled backups stopped.",
            "zen-backup-daily.timer: paused",
            "zen-backup-weekly.timer: paused",
        ]
        resumed = run_schedule("resume", installed)
        assert resumed.stdout[1:] == [
            "zen-backup-daily.timer: active",
            "zen-backup-weekly.timer: active",
        ]

    def test_status_without_jobs(self, ctx: RuntimeContext) -> None:
        assert run_schedule("status", ctx).stdout == ["No scheduled jobs."]

    def test_unknown_action(self, ctx: RuntimeContext) -> None:
        assert run_schedule("reboot", ctx).exit_code == 2


class TestUninstall:
    def test_keeps_backups_by_default(self, installed: RuntimeContext, home: Path) -> None:
        run_backup("daily", installed)
        result = run_uninstall(installed)
        assert "Settings removed." in result.stdout
        assert "--purge-backups" in result.stderr[0]
        assert (home / "zen-backups").exists()
        assert not resolve_config_path(installed).exists()
        assert run_schedule("status", installed).stdout == ["No scheduled jobs."]

    def test_purge(self, installed: RuntimeContext, home: Path) -> None:
        run_backup("daily", installed)
        result = run_uninstall(installed, purge_backups=True)
        assert "Backup archives removed." in result.stdout
        assert not (home / "zen-backups").exists()


class TestCli:
    @pytest.fixture(autouse=True)
    def _environment(self, ctx: RuntimeContext, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
        for key in ("XDG_CONFIG_HOME", "APPDATA", "USERPROFILE", "ZEN_BACKUP_CONFIG", "ZEN_BACKUP_CLOUD_CUSTOM"):
            monkeypatch.delenv(key, raising=False)
        for key, value in ctx.env.items():
            monkeypatch.setenv(key, value)
        monkeypatch.setenv("ZEN_BACKUP_TEST_OS", "linux")
        monkeypatch.setenv("ZEN_BACKUP_TEST_NOW", "2024-01-15T10:30:00Z")
        monkeypatch.setenv("ZEN_BACKUP_CLOUD", "none")
        monkeypatch.chdir(ctx.cwd)
        yield
        # main() attaches sinks to the captured streams
        logger.remove()

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc:
            cli.main(["--version"])
        assert exc.value.code == 0
        assert "zen-backup" in capsys.readouterr().out

    def test_requires_command(self) -> None:
        with pytest.raises(SystemExit) as exc:
            cli.main([])
        assert exc.value.code == 2

    def test_rejects_unknown_kind(self) -> None:
        with pytest.raises(SystemExit):
            cli.main(["backup", "hourly"])

    def test_install_and_backup(self, profile: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert cli.main(["install"]) == 0
        assert cli.main(["backup", "daily"]) == 0
        out = capsys.readouterr().out
        assert "Created daily backup:" in out
        assert "zen-backup-daily-2024-01-15.tar.gz" in out

    def test_explicit_config_flag(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        missing = tmp_path / "nowhere" / "settings.json"
        assert cli.main(["--config", str(missing), "list"]) == 1
        assert f"config file not found: {missing.resolve()}" in capsys.readouterr().err
