"""
Copy app source files into the per-user workspace and show the debug log.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
from collections import deque
from dataclasses import dataclass, field
from logging import Logger
from pathlib import Path

__all__ = [
    "APP_NAME",
    "TAIL_LINES",
    "DEBUG_LOG_FILENAME",
    "SyncStats",
    "default_workspace_dir",
    "find_debug_log",
    "sync_workspace",
    "tail_file",
]

APP_NAME = "InkDoodle"

TAIL_LINES = 40
"""
Default number of debug log lines to show.
"""

DEBUG_LOG_FILENAME = "debug.log"
"""
Debug log written by the app in its root folder.
"""


@dataclass(kw_only=True)
class SyncStats:
    """
    Encapsulates statistics for workspace sync.
    """

    copied: list[Path] = field(default_factory=list)
    """
    Destination paths which were written.
    """

    missing: list[Path] = field(default_factory=list)
    """
    Source paths which don't exist.
    """


def default_workspace_dir() -> Path:
    """
    Get the per-user application data workspace.
    """
    if sys.platform == "win32" and "APPDATA" in os.environ:
        base = Path(os.environ["APPDATA"])
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(
            os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
        )
    return base / APP_NAME / "workspace"


def find_debug_log(
    app_dir: Path, configured: Path | None = None
) -> Path | None:
    """
    Get debug log to show: the configured one if any, else the app's own
    log in `app_dir` if it exists.
    """
    if configured is not None:
        return configured

    path = app_dir / DEBUG_LOG_FILENAME
    return path if path.is_file() else None


def sync_workspace(
    source_dir: Path,
    workspace_dir: Path,
    files: list[Path],
    *,
    logger: Logger | None = None,
    dry_run: bool = False,
) -> SyncStats:
    """
    Copy files, given relative to `source_dir`, to the same relative paths in
    `workspace_dir`, creating folders as needed.
    """
    logger = logger or logging.getLogger()
    stats = SyncStats()

    for rel_path in files:
        src = source_dir / rel_path
        dest = workspace_dir / rel_path

        if not src.is_file():
            logger.warning(f"Source file does not exist: '{src}'")
            stats.missing.append(src)
            continue

        if dry_run:
            logger.info(f"Would copy '{src}' -> '{dest}'")
        else:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dest)
            logger.info(f"Copied '{src}' -> '{dest}'")

        stats.copied.append(dest)

    return stats


def tail_file(path: Path, lines: int = TAIL_LINES) -> list[str]:
    """
    Get the last lines of a text file, or an empty list if it doesn't exist.
    """
    if not path.is_file():
        return []

    with path.open(encoding="utf-8", errors="replace") as fh:
        return [line.rstrip("\n") for line in deque(fh, maxlen=lines)]
