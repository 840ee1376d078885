"""Shell driver: migrations are sh scripts, bookkeeping lives in TinyDB."""

import logging
import subprocess
from datetime import datetime, timezone
from pathlib import Path

from tinydb import Query, TinyDB

from ..constants import SHELL_EXECUTABLE, SHELL_SCRIPT_TIMEOUT, VERSIONS_TABLE, Direction
from ..driver import Capability, Driver
from ..errors import ConfigurationError, MigrateError
from ..file import File, Versions
from ..utils import check_command_exists, ensure_dir, expand_path, run_command

logger = logging.getLogger(__name__)

SCHEME = "shell://"

FILE_TEMPLATE = b"""#!/bin/sh
# Runs with "sh -c" from the migrations directory.
# A non-zero exit status fails the migration; the version is then not recorded.
set -e
"""


class ShellError(MigrateError):
    """
    Raised when a shell migration or statement fails.

    The error message includes the exit status and stderr of the script.
    """

    pass


class ShellDriver(Driver):
    """Driver for shell://<state file> URLs.

    Scripts cannot be rolled back, so a script that fails halfway leaves
    its partial effects behind; the version is only recorded on success.
    """

    extension = "sh"
    capabilities = frozenset({Capability.FILE_TEMPLATE})

    def __init__(self, url: str):
        """
        Open the TinyDB state file named by the URL.

        Args:
            url: shell://<path to JSON state file>

        Raises:
            ConfigurationError: If the URL is not a shell URL or sh is missing
        """
        if not url.startswith(SCHEME) or not url.removeprefix(SCHEME):
            raise ConfigurationError(f"invalid {SCHEME} URL: {url!r}")
        if not check_command_exists(SHELL_EXECUTABLE):
            raise ConfigurationError(f"{SHELL_EXECUTABLE!r} not found in PATH")

        self.state_file = expand_path(url.removeprefix(SCHEME))
        ensure_dir(self.state_file.parent)
        self.db = TinyDB(self.state_file)
        self.table = self.db.table(VERSIONS_TABLE)

    def close(self) -> None:
        self.db.close()

    def migrate(self, file: File) -> None:
        """Run the script, then record or forget its version."""
        script = file.read_content().decode("utf-8")
        self._run(script, file.directory)

        Migration = Query()
        if file.direction is Direction.UP:
            self.table.upsert(
                {
                    "version": file.version,
                    "name": file.name,
                    "applied_at": datetime.now(timezone.utc).isoformat(),
                },
                Migration.version == file.version,
            )
        else:
            self.table.remove(Migration.version == file.version)

    def version(self) -> int:
        return self.versions().latest

    def versions(self) -> Versions:
        return Versions(sorted((doc["version"] for doc in self.table.all()), reverse=True))

    def execute(self, statement: str) -> None:
        self._run(statement, None)

    def file_template(self) -> bytes:
        return FILE_TEMPLATE

    def _run(self, script: str, cwd: Path | None) -> None:
        try:
            result = run_command(
                [SHELL_EXECUTABLE, "-c", script], cwd=cwd, timeout=SHELL_SCRIPT_TIMEOUT
            )
        except subprocess.CalledProcessError as e:
            raise ShellError(f"Script exited with status {e.returncode}: {e.stderr.strip()}") from e
        except subprocess.TimeoutExpired as e:
            raise ShellError(f"Script timed out after {e.timeout} seconds") from e
        except OSError as e:
            raise ShellError(f"Failed to run {SHELL_EXECUTABLE}: {e}") from e

        if result.stdout:
            logger.info(result.stdout.rstrip())
