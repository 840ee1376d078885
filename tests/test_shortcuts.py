"""Tests for the one-shot helpers."""

from pathlib import Path

import pytest

from dbmigrate import shortcuts
from dbmigrate.driver import DriverRegistry, register_builtin_drivers


@pytest.fixture
def setup(tmp_path: Path) -> tuple[str, Path, DriverRegistry]:
    """SQLite URL, migrations directory with three versions and registry."""
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    for version in (1, 2, 3):
        (migrations / f"{version}_t{version}.up.sql").write_text(
            f"CREATE TABLE t{version} (id INTEGER);\n", encoding="utf-8"
        )
        (migrations / f"{version}_t{version}.down.sql").write_text(
            f"DROP TABLE t{version};\n", encoding="utf-8"
        )
    return f"sqlite3://{tmp_path / 'app.db'}", migrations, register_builtin_drivers(DriverRegistry())


def test_shortcuts_round_trip(setup: tuple[str, Path, DriverRegistry]) -> None:
    """Each helper opens and closes its own handle."""
    url, migrations, registry = setup

    assert [f.version for f in shortcuts.pending_migrations(url, migrations, registry)] == [1, 2, 3]

    shortcuts.migrate(url, migrations, registry, 2)
    assert shortcuts.version(url, migrations, registry) == 2

    shortcuts.up(url, migrations, registry)
    assert shortcuts.versions(url, migrations, registry) == [3, 2, 1]

    shortcuts.redo(url, migrations, registry)
    shortcuts.reset(url, migrations, registry)
    assert shortcuts.versions(url, migrations, registry) == [3, 2, 1]

    shortcuts.down(url, migrations, registry)
    assert shortcuts.version(url, migrations, registry) == 0


def test_shortcut_create(setup: tuple[str, Path, DriverRegistry]) -> None:
    """Test create through the helper."""
    url, migrations, registry = setup

    migration = shortcuts.create(url, migrations, registry, "add index")

    assert migration.version > 3
    assert [f.version for f in shortcuts.pending_migrations(url, migrations, registry)][-1] == (
        migration.version
    )
