"""Browser detection — is Zen running right now?"""

from __future__ import annotations

import psutil
from loguru import logger

from zen_backup.context import RuntimeContext

ZEN_PROCESS_NAMES = frozenset({"zen", "zen-bin", "zen.exe", "Zen", "Zen Browser"})


def _scan_processes() -> bool:
    for proc in psutil.process_iter(["name"]):
        try:
            name = proc.info.get("name") or ""
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue
        if name in ZEN_PROCESS_NAMES:
            logger.debug(f"Found running browser process pid={proc.pid} ({name})")
            return True
    return False


def is_browser_running(ctx: RuntimeContext) -> bool:
    """``ZEN_BACKUP_BROWSER_RUNNING`` (``1``/``0``) wins; otherwise scan the process table."""
    override = ctx.env.get("ZEN_BACKUP_BROWSER_RUNNING", "").strip()
    if override in ("0", "1"):
        return override == "1"
    if not ctx.is_host_platform:
        return False
    return _scan_processes()
