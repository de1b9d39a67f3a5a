"""Tests for runtime context, browser detection, notifications and the backup log."""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from loguru import logger

from zen_backup.config import BackupConfiguration
from zen_backup.context import Platform, RuntimeContext
from zen_backup.logger import append_log, setup_logger
from zen_backup.platform import browser
from zen_backup.platform.browser import is_browser_running
from zen_backup.platform.notifications import notify
from zen_backup.utils import expand_path, run_bounded


class TestRuntimeContext:
    def test_overrides_from_environment(self) -> None:
        ctx = RuntimeContext.from_environment(
            {"ZEN_BACKUP_TEST_NOW": "2024-03-01T08:00:00Z", "ZEN_BACKUP_TEST_OS": "windows", "HOME": "/h"}
        )
        assert ctx.now == datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
        assert ctx.platform == Platform.WINDOWS
        assert ctx.today == "2024-03-01"
        assert ctx.home == Path("/h")

    def test_home_falls_back_to_userprofile(self, tmp_path: Path) -> None:
        ctx = RuntimeContext(env={"USERPROFILE": str(tmp_path)}, cwd=Path("/"))
        assert ctx.home == tmp_path
        assert ctx.app_data == tmp_path / "AppData" / "Roaming"

    def test_flag(self, ctx: RuntimeContext) -> None:
        assert ctx.flag("ZEN_BACKUP_BROWSER_RUNNING") is False
        assert replace(ctx, env={"X": "1"}).flag("X") is True


class TestBrowserDetection:
    def test_env_override(self, ctx: RuntimeContext) -> None:
        assert is_browser_running(ctx) is False
        assert is_browser_running(replace(ctx, env={"ZEN_BACKUP_BROWSER_RUNNING": "1"})) is True

    def test_scans_processes(self, ctx: RuntimeContext, monkeypatch: pytest.MonkeyPatch) -> None:
        proc = MagicMock(pid=42, info={"name": "zen-bin"})
        monkeypatch.setattr(browser.psutil, "process_iter", lambda attrs: iter([proc]))
        host = replace(ctx, env={}, platform=Platform.current())
        assert is_browser_running(host) is True

    def test_other_processes_ignored(self, ctx: RuntimeContext, monkeypatch: pytest.MonkeyPatch) -> None:
        proc = MagicMock(pid=7, info={"name": "firefox"})
        monkeypatch.setattr(browser.psutil, "process_iter", lambda attrs: iter([proc]))
        host = replace(ctx, env={}, platform=Platform.current())
        assert is_browser_running(host) is False


class TestNotifications:
    def test_log_only(self, ctx: RuntimeContext, config: BackupConfiguration) -> None:
        assert notify(config, ctx, "Zen Backup", "hello") == "log-only"
        line = (config.local_path / "notifications.log").read_text(encoding="utf-8")
        assert "Zen Backup :: hello" in line

    def test_disabled(self, ctx: RuntimeContext, config: BackupConfiguration) -> None:
        off = replace(config, notifications_enabled=False)
        assert notify(off, ctx, "Zen Backup", "hello") == "disabled"
        assert not (config.local_path / "notifications.log").exists()


class TestBackupLog:
    def test_line_format(self, tmp_path: Path) -> None:
        append_log(tmp_path, "SUCCESS", "created daily backup x")
        append_log(tmp_path, "WARNING", "second line")
        lines = (tmp_path / "backup.log").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert re.fullmatch(
            r"\[\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z\] SUCCESS: created daily backup x", lines[0]
        )
        assert lines[1].endswith("WARNING: second line")

    def test_line_records_stay_off_the_console(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        setup_logger(verbose=True)
        try:
            append_log(tmp_path, "ERROR", "cloud sync failed: disk full")
            logger.warning("console still works")
            err = capsys.readouterr().err
        finally:
            logger.remove()

        assert "cloud sync failed" not in err
        assert "console still works" in err
        assert "cloud sync failed: disk full" in (tmp_path / "backup.log").read_text(encoding="utf-8")

    def test_separate_roots(self, tmp_path: Path) -> None:
        append_log(tmp_path / "a", "ERROR", "only in a")
        append_log(tmp_path / "b", "RESTORE", "only in b")
        assert "only in b" not in (tmp_path / "a" / "backup.log").read_text(encoding="utf-8")
        assert "only in a" not in (tmp_path / "b" / "backup.log").read_text(encoding="utf-8")


class TestUtils:
    def test_expand_path(self, tmp_path: Path) -> None:
        env = {"DATA": "/data", "APPDATA": "/appdata"}
        assert expand_path("~/x", env, tmp_path) == tmp_path / "x"
        assert expand_path("$DATA/y", env, tmp_path) == Path("/data/y")
        assert expand_path("%APPDATA%/z", env, tmp_path) == Path("/appdata/z")
        assert expand_path("rel", env, tmp_path, base_dir=tmp_path) == (tmp_path / "rel").resolve()

    def test_run_bounded_missing_binary(self) -> None:
        outcome = run_bounded(["definitely-not-a-real-binary-xyz"], timeout=1)
        assert not outcome.ok
        assert outcome.returncode == 127
