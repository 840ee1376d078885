"""Shared pytest fixtures."""

from pathlib import Path

import pytest

from dbmigrate.driver import Capability, DriverRegistry
from tests.helpers import FakeDriver, write_migrations


@pytest.fixture
def migrations_dir(tmp_path: Path) -> Path:
    """Migrations directory holding versions 1, 2 and 3."""
    path = tmp_path / "migrations"
    write_migrations(path, 1, 2, 3)
    return path


@pytest.fixture
def driver() -> FakeDriver:
    """Recording driver without optional capabilities."""
    return FakeDriver()


@pytest.fixture
def locking_driver() -> FakeDriver:
    """Recording driver that declares an advisory lock."""
    return FakeDriver(capabilities=frozenset({Capability.LOCK}))


@pytest.fixture
def registry() -> DriverRegistry:
    """Registry with the fake driver under the fake:// scheme."""
    registry = DriverRegistry()
    registry.register("fake", FakeDriver)
    return registry
