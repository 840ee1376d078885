"""Scaffolding of new migration file pairs."""

import logging
from datetime import datetime, timezone
from pathlib import Path

from .constants import FILENAME_FORMAT, MIGRATION_FILE_MODE, VERSION_FORMAT, Direction
from .file import File, MigrationFile
from .scanner import filename_regex, normalize_extension, read_migration_files
from .utils import ensure_dir, sanitize_migration_name

logger = logging.getLogger(__name__)


def next_version(latest: int, now: datetime | None = None) -> int:
    """
    Compute the version for a new migration.

    Uses the current UTC time at one-second resolution. If an existing
    version is not older, the new version is the latest one plus one, so
    several migrations created within the same second stay unique.

    Args:
        latest: Highest version already on disk (0 if none)
        now: Current time, defaults to datetime.now(timezone.utc)

    Returns:
        New version
    """
    if now is None:
        now = datetime.now(timezone.utc)
    candidate = int(now.strftime(VERSION_FORMAT))
    return latest + 1 if latest >= candidate else candidate


def create_migration(
    migrations_path: Path,
    name: str,
    extension: str,
    template: bytes = b"",
) -> MigrationFile:
    """
    Write a new up/down migration file pair.

    Args:
        migrations_path: Directory holding migration files
        name: Human-readable name; spaces become underscores
        extension: Driver file extension
        template: Initial content of both files

    Returns:
        MigrationFile describing the created files

    Raises:
        DiscoveryError: If existing files cannot be scanned
        OSError: If the files cannot be written
    """
    extension = normalize_extension(extension)
    directory = ensure_dir(Path(migrations_path)).resolve()
    existing = read_migration_files(directory, filename_regex(extension))

    version = next_version(existing.latest)
    name = sanitize_migration_name(name)

    files = {}
    for direction in Direction:
        filename = FILENAME_FORMAT.format(
            version=version, name=name, direction=direction.value, extension=extension
        )
        f = File(
            directory=directory,
            filename=filename,
            version=version,
            name=name,
            direction=direction,
            content=template,
        )
        f.path.write_bytes(template)
        f.path.chmod(MIGRATION_FILE_MODE)
        files[direction] = f
        logger.info(f"Created migration file {f.path}")

    return MigrationFile(version=version, up_file=files[Direction.UP], down_file=files[Direction.DOWN])
