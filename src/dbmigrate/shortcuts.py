"""One-shot helpers that open a handle, run one operation and close it."""

from pathlib import Path

from .context import Context
from .driver import DriverRegistry
from .file import File, MigrationFile, Versions
from .migrate import open_handle


def up(url: str, migrations_path: Path, registry: DriverRegistry, ctx: Context | None = None) -> None:
    """Apply all pending migrations. Shortcut for Handle.up()."""
    with open_handle(url, migrations_path, registry) as handle:
        handle.up(ctx)


def down(url: str, migrations_path: Path, registry: DriverRegistry, ctx: Context | None = None) -> None:
    """Roll back all migrations. Shortcut for Handle.down()."""
    with open_handle(url, migrations_path, registry) as handle:
        handle.down(ctx)


def redo(url: str, migrations_path: Path, registry: DriverRegistry, ctx: Context | None = None) -> None:
    """Roll back the most recent migration and run it again. Shortcut for Handle.redo()."""
    with open_handle(url, migrations_path, registry) as handle:
        handle.redo(ctx)


def reset(url: str, migrations_path: Path, registry: DriverRegistry, ctx: Context | None = None) -> None:
    """Roll back everything, then apply everything. Shortcut for Handle.reset()."""
    with open_handle(url, migrations_path, registry) as handle:
        handle.reset(ctx)


def migrate(
    url: str,
    migrations_path: Path,
    registry: DriverRegistry,
    relative_n: int,
    ctx: Context | None = None,
) -> None:
    """Apply relative +n/-n migrations. Shortcut for Handle.migrate()."""
    with open_handle(url, migrations_path, registry) as handle:
        handle.migrate(relative_n, ctx)


def version(url: str, migrations_path: Path, registry: DriverRegistry, ctx: Context | None = None) -> int:
    """Return the current version. Shortcut for Handle.version()."""
    with open_handle(url, migrations_path, registry) as handle:
        return handle.version(ctx)


def versions(
    url: str, migrations_path: Path, registry: DriverRegistry, ctx: Context | None = None
) -> Versions:
    """Return applied versions. Shortcut for Handle.versions()."""
    with open_handle(url, migrations_path, registry) as handle:
        return handle.versions(ctx)


def pending_migrations(
    url: str, migrations_path: Path, registry: DriverRegistry, ctx: Context | None = None
) -> list[File]:
    """Return pending migration files. Shortcut for Handle.pending_migrations()."""
    with open_handle(url, migrations_path, registry) as handle:
        return handle.pending_migrations(ctx)


def create(url: str, migrations_path: Path, registry: DriverRegistry, name: str) -> MigrationFile:
    """Create a new migration file pair. Shortcut for Handle.create()."""
    with open_handle(url, migrations_path, registry) as handle:
        return handle.create(name)
