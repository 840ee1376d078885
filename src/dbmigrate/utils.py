"""Filesystem and subprocess helpers for dbmigrate."""

import logging
import os
import shutil
import subprocess
from pathlib import Path

from pathvalidate import sanitize_filename

logger = logging.getLogger(__name__)


def ensure_dir(path: Path) -> Path:
    """Create a directory and its parents if missing, returning it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def expand_path(path: str) -> Path:
    """
    Resolve a configured path.

    Args:
        path: Path string; may contain ~ and $VARIABLES

    Returns:
        Absolute path
    """
    return Path(os.path.expanduser(os.path.expandvars(path))).resolve()


def sanitize_migration_name(name: str) -> str:
    """
    Turn a human-readable name into the name part of a migration filename.

    Spaces become underscores; characters that are invalid in filenames
    are replaced with hyphens.

    Args:
        name: Migration name as typed by the user

    Returns:
        Sanitized name
    """
    return sanitize_filename(name.strip().replace(" ", "_"), replacement_text="-")


def check_command_exists(cmd: str) -> bool:
    """Whether an executable named cmd is on PATH."""
    return shutil.which(cmd) is not None


def run_command(
    cmd: list[str],
    cwd: Path | None = None,
    timeout: float | None = None,
) -> subprocess.CompletedProcess:
    """
    Run a command to completion, capturing its output as text.

    Args:
        cmd: Executable and arguments
        cwd: Working directory, defaults to the current one
        timeout: Seconds before the process is killed (None waits forever)

    Returns:
        Completed process with stdout and stderr

    Raises:
        subprocess.CalledProcessError: If the command exits non-zero
        subprocess.TimeoutExpired: If the timeout passes
    """
    logger.debug(f"Running {cmd[0]} in {cwd or Path.cwd()}")
    return subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, check=True, timeout=timeout)
