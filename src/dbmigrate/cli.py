"""CLI interface for dbmigrate."""

import sys
from pathlib import Path

# Runtime version check - must be before other imports
if sys.version_info < (3, 11):
    print("Error: dbmigrate requires Python 3.11 or higher", file=sys.stderr)
    version = f"Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    print(f"Current version: {version}", file=sys.stderr)
    sys.exit(1)

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import click
from rich.console import Console

from . import __version__
from .config import Config, get_config_path, load_config, save_config
from .constants import LOG_DATE_FORMAT, LOG_FORMAT
from .context import Context
from .display import (
    display_created,
    display_pending,
    display_versions,
    print_step_done,
    print_step_start,
)
from .driver import DriverRegistry, register_builtin_drivers
from .errors import MigrateError
from .file import File
from .migrate import Handle, open_handle
from .utils import ensure_dir

console = Console()


class StepPrinter:
    """Pre/post migration hooks that report progress on the console."""

    def __init__(self, console: Console):
        self.console = console
        self.completed = 0

    def before(self, f: File) -> None:
        print_step_start(f, self.console)

    def after(self, f: File) -> None:
        print_step_done(f, self.console)
        self.completed += 1

    def summary(self) -> None:
        if self.completed:
            self.console.print(f"{self.completed} migration(s) completed.")
        else:
            self.console.print("Nothing to migrate.")


@contextmanager
def _handle(ctx: click.Context, printer: StepPrinter | None = None) -> Iterator[Handle]:
    """Open a handle for the configured database; exit with status 1 on errors."""
    config: Config = ctx.obj["config"]
    registry: DriverRegistry = ctx.obj["registry"]

    try:
        handle = open_handle(
            config.database_url,
            config.migrations_dir,
            registry,
            pre_hook=printer.before if printer else None,
            post_hook=printer.after if printer else None,
        )
    except MigrateError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    try:
        yield handle
    except MigrateError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    finally:
        handle.close()


def _run_context(ctx: click.Context) -> Context:
    return Context(timeout=ctx.obj["config"].timeout)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Custom config file path",
)
@click.option("--url", help="Database URL (overrides config)")
@click.option(
    "--path",
    "migrations_dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Migrations directory (overrides config)",
)
@click.option("--timeout", type=click.FloatRange(min=0), help="Seconds before the run is abandoned")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    url: str | None,
    migrations_dir: Path | None,
    timeout: float | None,
    verbose: bool,
) -> None:
    """dbmigrate: apply versioned migrations to a database."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    ctx.ensure_object(dict)

    # Load configuration and apply command line overrides
    try:
        settings = load_config(config)
        data = settings.model_dump(mode="json")
        if url:
            data["database"]["url"] = url
        if migrations_dir:
            data["paths"]["migrations_dir"] = str(migrations_dir)
        if timeout is not None:
            data["run"]["timeout"] = timeout
        settings = Config.model_validate(data)
    except (ValueError, OSError) as e:
        console.print(f"[red]Error:[/red] Configuration: {e}")
        sys.exit(1)

    ctx.obj["config"] = settings
    ctx.obj["config_path"] = config or get_config_path()
    ctx.obj["registry"] = register_builtin_drivers(DriverRegistry())


@cli.command()
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing config file")
@click.pass_context
def init(ctx: click.Context, force: bool) -> None:
    """
    Write a config file and create the migrations directory.

    Examples:

        \b
        # Start a project using SQLite
        dbmigrate --url sqlite3://app.db init
    """
    config: Config = ctx.obj["config"]
    config_path: Path = ctx.obj["config_path"]

    if config_path.exists() and not force:
        console.print(f"[red]Error:[/red] {config_path} already exists (use --force to overwrite)")
        sys.exit(1)

    save_config(config_path, config)
    ensure_dir(config.migrations_dir)
    console.print(f"[green]✓[/green] Wrote {config_path}")
    console.print(f"  Migrations directory: {config.migrations_dir}")


@cli.command()
@click.argument("name", nargs=-1, required=True)
@click.pass_context
def create(ctx: click.Context, name: tuple[str, ...]) -> None:
    """
    Create a new pair of up/down migration files.

    Examples:

        \b
        dbmigrate create add users table
    """
    with _handle(ctx) as handle:
        migration = handle.create(" ".join(name))
    display_created(migration, console)


@cli.command()
@click.pass_context
def up(ctx: click.Context) -> None:
    """Apply all pending migrations."""
    printer = StepPrinter(console)
    with _handle(ctx, printer) as handle:
        handle.up(_run_context(ctx))
    printer.summary()


@cli.command()
@click.pass_context
def down(ctx: click.Context) -> None:
    """Roll back all applied migrations."""
    printer = StepPrinter(console)
    with _handle(ctx, printer) as handle:
        handle.down(_run_context(ctx))
    printer.summary()


@cli.command()
@click.pass_context
def redo(ctx: click.Context) -> None:
    """Roll back the most recent migration, then apply again."""
    printer = StepPrinter(console)
    with _handle(ctx, printer) as handle:
        handle.redo(_run_context(ctx))
    printer.summary()


@cli.command()
@click.pass_context
def reset(ctx: click.Context) -> None:
    """Roll back all migrations, then apply all of them."""
    printer = StepPrinter(console)
    with _handle(ctx, printer) as handle:
        handle.reset(_run_context(ctx))
    printer.summary()


@cli.command(context_settings={"ignore_unknown_options": True})
@click.argument("relative_n", type=int)
@click.pass_context
def migrate(ctx: click.Context, relative_n: int) -> None:
    """
    Apply (+N) or roll back (-N) migrations relative to the current version.

    Examples:

        \b
        # Apply the next two migrations
        dbmigrate migrate 2

        \b
        # Roll back the last migration
        dbmigrate migrate -- -1
    """
    printer = StepPrinter(console)
    with _handle(ctx, printer) as handle:
        handle.migrate(relative_n, _run_context(ctx))
    printer.summary()


@cli.command()
@click.argument("version", type=int)
@click.pass_context
def apply(ctx: click.Context, version: int) -> None:
    """Apply the up migration of a specific VERSION."""
    printer = StepPrinter(console)
    with _handle(ctx, printer) as handle:
        handle.apply_version(version, _run_context(ctx))
    printer.summary()


@cli.command()
@click.argument("version", type=int)
@click.pass_context
def rollback(ctx: click.Context, version: int) -> None:
    """Run the down migration of a specific VERSION."""
    printer = StepPrinter(console)
    with _handle(ctx, printer) as handle:
        handle.rollback_version(version, _run_context(ctx))
    printer.summary()


@cli.command()
@click.pass_context
def version(ctx: click.Context) -> None:
    """Print the current migration version."""
    with _handle(ctx) as handle:
        current = handle.version(_run_context(ctx))
    console.print(str(current))


@cli.command()
@click.pass_context
def versions(ctx: click.Context) -> None:
    """List applied migration versions."""
    with _handle(ctx) as handle:
        applied = handle.versions(_run_context(ctx))
    display_versions(applied, console)


@cli.command()
@click.pass_context
def pending(ctx: click.Context) -> None:
    """List migrations that would be applied by 'up'."""
    with _handle(ctx) as handle:
        files = handle.pending_migrations(_run_context(ctx))
    display_pending(files, console)


def main() -> None:
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
