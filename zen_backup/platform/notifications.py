"""Desktop notifications — best effort, never blocking for long, never raising."""

from __future__ import annotations

import shutil

from loguru import logger

from zen_backup.config import BackupConfiguration
from zen_backup.context import Platform, RuntimeContext
from zen_backup.logger import append_notification
from zen_backup.utils import run_bounded

# Notification helpers can hang (e.g. waiting on a GUI session); cap each call
NOTIFY_TIMEOUT = 5.0


def _escape_applescript(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _deliver_macos(ctx: RuntimeContext, title: str, message: str) -> str:
    if shutil.which("terminal-notifier", path=ctx.env.get("PATH")):
        outcome = run_bounded(
            ["terminal-notifier", "-title", title, "-message", message], NOTIFY_TIMEOUT
        )
        if outcome.ok:
            return "terminal-notifier"

    script = (
        f'display notification "{_escape_applescript(message)}" '
        f'with title "{_escape_applescript(title)}"'
    )
    if run_bounded(["osascript", "-e", script], NOTIFY_TIMEOUT).ok:
        return "osascript"
    return "osascript-failed"


def _deliver_linux(ctx: RuntimeContext, title: str, message: str) -> str:
    if not shutil.which("notify-send", path=ctx.env.get("PATH")):
        return "log-only"
    if run_bounded(["notify-send", title, message], NOTIFY_TIMEOUT, env=ctx.env).ok:
        return "notify-send"
    return "notify-send-failed"


def notify(
    config: BackupConfiguration,
    ctx: RuntimeContext,
    title: str,
    message: str,
) -> str:
    """
    Show a desktop notification and record it in ``notifications.log``.

    Returns the delivery backend used (``"disabled"`` when notifications are
    turned off, ``"log-only"`` when no native helper ran).
    """
    if not config.notifications_enabled:
        return "disabled"

    backend = "log-only"
    native = ctx.env.get("ZEN_BACKUP_NOTIFY", "").strip() != "log-only" and ctx.is_host_platform
    if native:
        if ctx.platform == Platform.DARWIN:
            backend = _deliver_macos(ctx, title, message)
        elif ctx.platform == Platform.LINUX:
            backend = _deliver_linux(ctx, title, message)

    try:
        append_notification(config.local_path, f"{ctx.platform} ({backend}): {title} :: {message}")
    except OSError as e:
        logger.warning(f"Could not record notification: {e}")
    return backend
