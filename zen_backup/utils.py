"""Shared utility functions."""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

from loguru import logger

_BRACED_VAR = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_BARE_VAR = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)")
_WINDOWS_VAR = re.compile(r"%([A-Za-z_][A-Za-z0-9_]*)%")

# Tokens that must never survive into a persisted definition
UNRESOLVED_TOKEN = re.compile(r"(^~[/\\]|^~$|\$\{?[A-Za-z_][A-Za-z0-9_]*\}?|%[A-Za-z_][A-Za-z0-9_]*%)")


def format_size(size_bytes: int) -> str:
    """Format byte count to human-readable string."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"


def expand_path(
    raw: str,
    env: Mapping[str, str],
    home: Path,
    base_dir: Path | None = None,
) -> Path:
    """
    Expand ``~``, ``$VAR``, ``${VAR}`` and ``%VAR%`` against *env*.

    Relative results are resolved against *base_dir* when given.  Unknown
    variables expand to an empty string.
    """
    value = raw.strip()
    if value == "~":
        value = str(home)
    elif value.startswith(("~/", "~\\")):
        value = str(home / value[2:])

    lookup = lambda m: env.get(m.group(1), "")  # noqa: E731
    value = _BRACED_VAR.sub(lookup, value)
    value = _BARE_VAR.sub(lookup, value)
    value = _WINDOWS_VAR.sub(lookup, value)

    path = Path(value)
    if base_dir is not None and not path.is_absolute():
        path = (base_dir / path).resolve()
    return path


@dataclass
class CommandOutcome:
    """Result of a bounded external command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def run_bounded(
    args: Sequence[str],
    timeout: float,
    env: Mapping[str, str] | None = None,
) -> CommandOutcome:
    """
    Run an external command, killing it if it outlives *timeout* seconds.

    Never raises for a missing binary or a hung child; the outcome carries
    the failure instead.
    """
    argv = [str(a) for a in args]
    try:
        proc = subprocess.run(  # noqa: S603
            argv,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=dict(env) if env is not None else None,
            check=False,
        )
    except subprocess.TimeoutExpired:
        logger.debug(f"Command timed out after {timeout}s: {' '.join(argv)}")
        return CommandOutcome(args=argv, returncode=-1, timed_out=True)
    except OSError as e:
        logger.debug(f"Command could not start: {argv[0]}: {e}")
        return CommandOutcome(args=argv, returncode=127, stderr=str(e))
    return CommandOutcome(
        args=argv,
        returncode=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )
