"""Discovery of migration files in a directory."""

import logging
import re
from pathlib import Path

from .constants import FILENAME_PATTERN, Direction
from .errors import ConfigurationError, DiscoveryError, DuplicateMigrationError
from .file import File, MigrationFile, MigrationFiles

logger = logging.getLogger(__name__)


def normalize_extension(extension: str) -> str:
    """
    Strip a leading dot from a driver file extension.

    Args:
        extension: Extension as declared by a driver (e.g. "sql" or ".sql")

    Returns:
        Extension without leading dot

    Raises:
        ConfigurationError: If the extension is empty
    """
    extension = extension.removeprefix(".")
    if not extension:
        raise ConfigurationError("migration file extension is empty")
    return extension


def filename_regex(extension: str) -> re.Pattern[str]:
    """Build the migration filename pattern for a driver's file extension."""
    return re.compile(FILENAME_PATTERN.format(extension=re.escape(normalize_extension(extension))))


def parse_filename_schema(filename: str, pattern: re.Pattern[str]) -> tuple[int, str, Direction]:
    """
    Parse version, name and direction from a migration filename.

    Args:
        filename: Filename without directory
        pattern: Pattern built by filename_regex()

    Returns:
        Tuple of (version, name, direction)

    Raises:
        ValueError: If the filename does not follow the migration schema
    """
    match = pattern.match(filename)
    if match is None:
        raise ValueError(f"Unable to parse filename schema: {filename!r}")

    version, name, direction = match.groups()
    return int(version), name, Direction(direction)


def read_migration_files(path: Path, pattern: re.Pattern[str]) -> MigrationFiles:
    """
    Read all migration files from a directory.

    Files that do not match the pattern are ignored. Up and down files of
    the same version are paired into one MigrationFile.

    Args:
        path: Migrations directory
        pattern: Pattern built by filename_regex()

    Returns:
        Migration files sorted by ascending version

    Raises:
        DiscoveryError: If the directory cannot be listed
        DuplicateMigrationError: If two files share version and direction
    """
    try:
        entries = sorted(entry for entry in path.iterdir() if entry.is_file())
    except OSError as e:
        raise DiscoveryError(f"Failed to read migrations directory {path}: {e}") from e

    directory = path.resolve()
    found: dict[int, dict[Direction, File]] = {}

    for entry in entries:
        try:
            version, name, direction = parse_filename_schema(entry.name, pattern)
        except ValueError:
            # Not every file in the directory has to be a migration
            continue

        by_direction = found.setdefault(version, {})
        existing = by_direction.get(direction)
        if existing is not None:
            raise DuplicateMigrationError(version, existing.filename, entry.name)

        by_direction[direction] = File(
            directory=directory,
            filename=entry.name,
            version=version,
            name=name,
            direction=direction,
        )

    files = MigrationFiles(
        MigrationFile(
            version=version,
            up_file=by_direction.get(Direction.UP),
            down_file=by_direction.get(Direction.DOWN),
        )
        for version, by_direction in found.items()
    )
    files.sort(key=lambda mf: mf.version)

    logger.debug(f"Found {len(files)} migration(s) in {directory}")
    return files
