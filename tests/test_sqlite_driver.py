"""Tests for the SQLite driver."""

import sqlite3
from pathlib import Path

import pytest

from dbmigrate.constants import VERSIONS_TABLE
from dbmigrate.driver import DriverRegistry, register_builtin_drivers
from dbmigrate.drivers import SQLiteDriver
from dbmigrate.drivers.sqlite import split_statements
from dbmigrate.errors import ConfigurationError, MigrationStepError, TransactionBlockError
from dbmigrate.migrate import open_handle


def _write(path: Path, filename: str, content: str) -> None:
    path.mkdir(parents=True, exist_ok=True)
    (path / filename).write_text(content, encoding="utf-8")


@pytest.fixture
def sqlite_registry() -> DriverRegistry:
    """Registry with the bundled drivers."""
    return register_builtin_drivers(DriverRegistry())


@pytest.fixture
def database(tmp_path: Path) -> Path:
    """Path of a fresh database file."""
    return tmp_path / "app.db"


@pytest.fixture
def migrations(tmp_path: Path) -> Path:
    """Two table migrations."""
    path = tmp_path / "migrations"
    _write(path, "1_users.up.sql", "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT);\n")
    _write(path, "1_users.down.sql", "DROP TABLE users;\n")
    _write(
        path,
        "2_posts.up.sql",
        "CREATE TABLE posts (\n  id INTEGER PRIMARY KEY,\n  user_id INTEGER\n);\n"
        "CREATE INDEX posts_user ON posts (user_id);\n",
    )
    _write(path, "2_posts.down.sql", "DROP TABLE posts;\n")
    return path


def _tables(database: Path) -> set[str]:
    with sqlite3.connect(database) as conn:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {row[0] for row in rows}


class TestSQLiteDriver:
    """Tests for SQLiteDriver."""

    def test_invalid_url(self) -> None:
        """Test a URL without a path is rejected."""
        with pytest.raises(ConfigurationError):
            SQLiteDriver("sqlite3://")

    def test_creates_versions_table(self, database: Path) -> None:
        """Test the bookkeeping table exists after opening."""
        driver = SQLiteDriver(f"sqlite3://{database}")
        driver.close()

        assert VERSIONS_TABLE in _tables(database)

    def test_empty_versions(self) -> None:
        """Test a new database has nothing applied."""
        driver = SQLiteDriver("sqlite3://:memory:")
        try:
            assert driver.version() == 0
            assert driver.versions() == []
        finally:
            driver.close()

    def test_file_template_mentions_directives(self) -> None:
        """Test new files explain the transaction directives."""
        driver = SQLiteDriver("sqlite3://:memory:")
        try:
            template = driver.file_template()
        finally:
            driver.close()

        assert b"-- TXBEGIN" in template
        assert b"-- NOTX" in template

    def test_execute(self, database: Path) -> None:
        """Test running a statement outside the migration flow."""
        driver = SQLiteDriver(f"sqlite3://{database}")
        driver.execute("CREATE TABLE scratch (id INTEGER)")
        driver.close()

        assert "scratch" in _tables(database)

    def test_execute_several_statements(self, database: Path) -> None:
        """Test a text with several statements runs all of them."""
        driver = SQLiteDriver(f"sqlite3://{database}")
        driver.execute("CREATE TABLE a (id INTEGER); CREATE TABLE b (id INTEGER);")
        driver.close()

        assert {"a", "b"} <= _tables(database)


class TestSplitStatements:
    """Tests for split_statements."""

    def test_single_statement(self) -> None:
        """Test one statement comes back stripped."""
        assert split_statements("  SELECT 1;\n") == ["SELECT 1;"]

    def test_several_statements_on_one_line(self) -> None:
        """Test statements sharing a line are separated."""
        assert split_statements("INSERT INTO t VALUES (1); INSERT INTO t VALUES (2);") == [
            "INSERT INTO t VALUES (1);",
            "INSERT INTO t VALUES (2);",
        ]

    def test_semicolon_in_string_literal(self) -> None:
        """Test semicolons inside quotes do not end a statement."""
        assert split_statements("INSERT INTO t VALUES ('a;b'); SELECT 1;") == [
            "INSERT INTO t VALUES ('a;b');",
            "SELECT 1;",
        ]

    def test_trigger_body(self) -> None:
        """Test a trigger with statements in its body stays whole."""
        trigger = (
            "CREATE TRIGGER audit AFTER INSERT ON t\n"
            "BEGIN\n"
            "  INSERT INTO log VALUES (new.id);\n"
            "END;"
        )
        assert split_statements(trigger + "\nSELECT 1;") == [trigger, "SELECT 1;"]

    def test_unterminated_tail(self) -> None:
        """Test trailing text without a semicolon is kept as the last statement."""
        assert split_statements("SELECT 1; SELECT 2") == ["SELECT 1;", "SELECT 2"]


class TestSQLiteMigrations:
    """End-to-end migrations against SQLite."""

    def test_up_and_down(
        self, sqlite_registry: DriverRegistry, database: Path, migrations: Path
    ) -> None:
        """Test applying and rolling back all migrations."""
        url = f"sqlite3://{database}"
        with open_handle(url, migrations, sqlite_registry) as handle:
            handle.up()
            assert handle.versions() == [2, 1]
            assert {"users", "posts"} <= _tables(database)

            handle.down()
            assert handle.versions() == []
            assert not {"users", "posts"} & _tables(database)

    def test_versions_persist(
        self, sqlite_registry: DriverRegistry, database: Path, migrations: Path
    ) -> None:
        """Test applied versions survive reopening the database."""
        url = f"sqlite3://{database}"
        with open_handle(url, migrations, sqlite_registry) as handle:
            handle.migrate(1)

        with open_handle(url, migrations, sqlite_registry) as handle:
            assert handle.version() == 1
            assert [f.version for f in handle.pending_migrations()] == [2]

    def test_failed_migration_not_recorded(
        self, sqlite_registry: DriverRegistry, database: Path, migrations: Path
    ) -> None:
        """Test a failing file leaves neither schema changes nor a version row."""
        _write(
            migrations,
            "3_broken.up.sql",
            "CREATE TABLE comments (id INTEGER);\nINSERT INTO nowhere VALUES (1);\n",
        )
        url = f"sqlite3://{database}"

        with open_handle(url, migrations, sqlite_registry) as handle:
            with pytest.raises(MigrationStepError) as exc_info:
                handle.up()

            assert exc_info.value.version == 3
            assert exc_info.value.name == "broken"
            assert handle.versions() == [2, 1]

        assert "comments" not in _tables(database)

    def test_explicit_blocks(
        self, sqlite_registry: DriverRegistry, database: Path, tmp_path: Path
    ) -> None:
        """Test a NOTX migration keeps committed blocks when a later block fails."""
        path = tmp_path / "blocks"
        _write(
            path,
            "1_seed.up.sql",
            "-- NOTX\n"
            "CREATE TABLE t (id INTEGER PRIMARY KEY);\n"
            "-- TXBEGIN\n"
            "INSERT INTO t VALUES (1);\n"
            "-- TXEND\n"
            "-- TXBEGIN\n"
            "INSERT INTO t VALUES (1);\n"
            "-- TXEND\n",
        )

        with open_handle(f"sqlite3://{database}", path, sqlite_registry) as handle:
            with pytest.raises(MigrationStepError) as exc_info:
                handle.up()
            assert isinstance(exc_info.value.__cause__, TransactionBlockError)
            assert handle.versions() == []

        with sqlite3.connect(database) as conn:
            assert conn.execute("SELECT id FROM t").fetchall() == [(1,)]

    def test_template_migration(
        self, sqlite_registry: DriverRegistry, database: Path, tmp_path: Path, monkeypatch
    ) -> None:
        """Test .tpl migrations are rendered from the environment."""
        monkeypatch.setenv("TABLE_NAME", "rendered")
        path = tmp_path / "templates"
        _write(path, "1_tpl.up.sql.tpl", "CREATE TABLE {{ TABLE_NAME }} (id INTEGER);\n")

        with open_handle(f"sqlite3://{database}", path, sqlite_registry) as handle:
            handle.up()

        assert "rendered" in _tables(database)

    def test_create_uses_template(
        self, sqlite_registry: DriverRegistry, database: Path, tmp_path: Path
    ) -> None:
        """Test created SQL files start from the driver template."""
        path = tmp_path / "new"
        with open_handle(f"sqlite3://{database}", path, sqlite_registry) as handle:
            migration = handle.create("add accounts")

        assert migration.up_file is not None
        assert migration.up_file.filename.endswith("_add_accounts.up.sql")
        assert b"TXBEGIN" in migration.up_file.path.read_bytes()

    def test_several_statements_on_one_line(
        self, sqlite_registry: DriverRegistry, database: Path, tmp_path: Path
    ) -> None:
        """Test a line holding two statements applies both in the file's transaction."""
        path = tmp_path / "inline"
        _write(
            path,
            "1_seed.up.sql",
            "CREATE TABLE t (id INTEGER);\nINSERT INTO t VALUES (1); INSERT INTO t VALUES (2);\n",
        )

        with open_handle(f"sqlite3://{database}", path, sqlite_registry) as handle:
            handle.up()
            assert handle.versions() == [1]

        with sqlite3.connect(database) as conn:
            assert conn.execute("SELECT id FROM t ORDER BY id").fetchall() == [(1,), (2,)]

    def test_trigger_spanning_lines(
        self, sqlite_registry: DriverRegistry, database: Path, tmp_path: Path
    ) -> None:
        """Test a trigger whose body has its own semicolons is created as one statement."""
        path = tmp_path / "trigger"
        _write(
            path,
            "1_audit.up.sql",
            "CREATE TABLE t (id INTEGER);\n"
            "CREATE TABLE log (id INTEGER);\n"
            "CREATE TRIGGER audit AFTER INSERT ON t\n"
            "BEGIN\n"
            "  INSERT INTO log VALUES (new.id);\n"
            "END;\n"
            "INSERT INTO t VALUES (7);\n",
        )

        with open_handle(f"sqlite3://{database}", path, sqlite_registry) as handle:
            handle.up()

        with sqlite3.connect(database) as conn:
            assert conn.execute("SELECT id FROM log").fetchall() == [(7,)]

    def test_failure_after_inline_statement_rolls_back(
        self, sqlite_registry: DriverRegistry, database: Path, tmp_path: Path
    ) -> None:
        """Test a failing statement later on the same line rolls back the earlier one."""
        path = tmp_path / "rollback"
        _write(
            path,
            "1_seed.up.sql",
            "CREATE TABLE t (id INTEGER);\nINSERT INTO t VALUES (1); INSERT INTO nowhere VALUES (2);\n",
        )

        with open_handle(f"sqlite3://{database}", path, sqlite_registry) as handle:
            with pytest.raises(MigrationStepError):
                handle.up()
            assert handle.versions() == []

        assert "t" not in _tables(database)
