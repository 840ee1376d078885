"""SQLite driver using directive-controlled transactions."""

import logging
import sqlite3

from ..constants import VERSIONS_TABLE, Direction
from ..driver import Capability, Driver
from ..errors import ConfigurationError
from ..file import File, Versions
from ..script import execute_script, parse_script

logger = logging.getLogger(__name__)

SCHEME = "sqlite3://"

FILE_TEMPLATE = b"""
-- Each SQL statement MUST end with a semicolon (;) followed by a newline.
-- The whole migration runs inside one transaction by default.
-- Wrap statements in "-- TXBEGIN" and "-- TXEND" comments for custom transactions:
--   - a migration CAN hold several separate transactions
--   - statements outside TXBEGIN/TXEND then run without a transaction
-- Put "-- NOTX" above all statements to disable the default transaction.
"""


def split_statements(text: str) -> list[str]:
    """
    Split SQL text into statements sqlite3 can execute one at a time.

    A semicolon only ends a statement when the text before it is complete,
    so semicolons inside string literals and trigger bodies are kept.

    Args:
        text: One or more SQL statements

    Returns:
        Stripped statements in order; trailing text without a semicolon is
        returned as the last statement
    """
    statements = []
    start = 0
    for end, char in enumerate(text, start=1):
        if char == ";" and sqlite3.complete_statement(text[start:end]):
            statements.append(text[start:end].strip())
            start = end
    if text[start:].strip():
        statements.append(text[start:].strip())
    return statements


def _execute_each(cursor: sqlite3.Cursor, text: str) -> None:
    for statement in split_statements(text):
        cursor.execute(statement)


class SQLiteDriver(Driver):
    """Driver for sqlite3://<path> URLs.

    SQLite has no advisory lock, so concurrent runs against the same file
    are only protected by SQLite's own write locking.
    """

    extension = "sql"
    capabilities = frozenset({Capability.FILE_TEMPLATE})

    def __init__(self, url: str):
        """
        Open the database file named by the URL.

        Args:
            url: sqlite3://<path>, e.g. sqlite3:///var/lib/app.db or sqlite3://:memory:

        Raises:
            ConfigurationError: If the URL is not a sqlite3 URL
        """
        if not url.startswith(SCHEME) or not url.removeprefix(SCHEME):
            raise ConfigurationError(f"invalid {SCHEME} URL: {url!r}")

        # Autocommit mode: transactions are driven explicitly by the script executor.
        self.connection = sqlite3.connect(url.removeprefix(SCHEME), isolation_level=None)
        self._ensure_version_table_exists()

    def _ensure_version_table_exists(self) -> None:
        self.connection.execute(
            f"CREATE TABLE IF NOT EXISTS {VERSIONS_TABLE} (version INTEGER PRIMARY KEY)"
        )

    def close(self) -> None:
        self.connection.close()

    def migrate(self, file: File) -> None:
        """Run the file's statements and record the version in the same transaction."""
        script = parse_script(
            file.read_content().decode("utf-8"), is_complete=sqlite3.complete_statement
        )

        def update_versions(cursor: sqlite3.Cursor) -> None:
            if file.direction is Direction.UP:
                cursor.execute(f"INSERT INTO {VERSIONS_TABLE} (version) VALUES (?)", (file.version,))
            else:
                cursor.execute(f"DELETE FROM {VERSIONS_TABLE} WHERE version = ?", (file.version,))

        execute_script(self.connection, script, finalize=update_versions, execute=_execute_each)
        logger.debug(f"Recorded {file.direction.value} of version {file.version}")

    def version(self) -> int:
        row = self.connection.execute(f"SELECT MAX(version) FROM {VERSIONS_TABLE}").fetchone()
        return row[0] if row and row[0] is not None else 0

    def versions(self) -> Versions:
        rows = self.connection.execute(
            f"SELECT version FROM {VERSIONS_TABLE} ORDER BY version DESC"
        ).fetchall()
        return Versions(row[0] for row in rows)

    def execute(self, statement: str) -> None:
        _execute_each(self.connection.cursor(), statement)

    def file_template(self) -> bytes:
        return FILE_TEMPLATE
