"""Display functions for dbmigrate CLI output."""

from rich.console import Console
from rich.table import Table

from .constants import Direction
from .file import File, MigrationFile


def display_versions(versions: list[int], console: Console) -> None:
    """
    Display applied versions, most recent first.

    Args:
        versions: Applied versions
        console: Rich console instance for output
    """
    if not versions:
        console.print("No migrations applied.")
        return

    table = Table(title="Applied Migrations")
    table.add_column("Version", style="cyan")

    for version in versions:
        table.add_row(str(version))

    console.print(table)


def display_pending(files: list[File], console: Console) -> None:
    """
    Display pending migration files in the order they would run.

    Args:
        files: Pending up files
        console: Rich console instance for output
    """
    if not files:
        console.print("No pending migrations.")
        return

    table = Table(title="Pending Migrations")
    table.add_column("Version", style="cyan")
    table.add_column("Name", style="magenta")
    table.add_column("File")

    for f in files:
        table.add_row(str(f.version), f.name, f.filename)

    console.print(table)


def display_created(migration: MigrationFile, console: Console) -> None:
    """
    Display the files written by create.

    Args:
        migration: Created migration file pair
        console: Rich console instance for output
    """
    console.print(f"[green]✓[/green] Created migration {migration.version}")
    for f in (migration.up_file, migration.down_file):
        if f is not None:
            console.print(f"  {f.path}")


def print_step_start(f: File, console: Console) -> None:
    """Print the migration that is about to run."""
    action = "Applying" if f.direction is Direction.UP else "Rolling back"
    console.print(f"{action} {f.version} [cyan]{f.name}[/cyan]...")


def print_step_done(f: File, console: Console) -> None:
    """Print completion of a migration step."""
    console.print(f"  [green]✓[/green] {f.filename}")
