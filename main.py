"""Application entry point — runs the zen-backup command line."""

from __future__ import annotations

import sys

from zen_backup.cli import main

if __name__ == "__main__":
    sys.exit(main())
