"""Constants used throughout dbmigrate."""

from enum import Enum


# Migration directions
class Direction(str, Enum):
    """Migration file directions.

    Attributes:
        UP: Forward migration, applies a version
        DOWN: Rollback migration, removes a version
    """

    UP = "up"
    DOWN = "down"


# Migration filename schema: {version}_{name}.{up|down}.{extension}[.tpl]
FILENAME_PATTERN = r"^([0-9]+)_(.*)\.(up|down)\.{extension}(?:\.tpl)?$"
FILENAME_FORMAT = "{version}_{name}.{direction}.{extension}"
TEMPLATE_SUFFIX = ".tpl"

# Version timestamps (UTC, one-second resolution, 14 digits)
VERSION_FORMAT = "%Y%m%d%H%M%S"

# Script directives
DIRECTIVE_NOTX = "NOTX"
DIRECTIVE_TXBEGIN = "TXBEGIN"
DIRECTIVE_TXEND = "TXEND"
DIRECTIVE_PREFIX = "--"

# Lines of script shown around a failing position
ERROR_CONTEXT_LINES_BEFORE = 5
ERROR_CONTEXT_LINES_AFTER = 5

# Bookkeeping table name used by the bundled drivers
VERSIONS_TABLE = "schema_migrations"

# Lock acquisition
LOCK_POLL_INTERVAL = 0.05  # How often a lock wait re-checks its context (seconds)
LOCK_WORKER_THREADS = 1  # One driver.lock() call in flight

# Created files
MIGRATION_FILE_MODE = 0o644

# Shell driver
SHELL_EXECUTABLE = "sh"
SHELL_SCRIPT_TIMEOUT = 600.0  # Timeout for a single shell migration (seconds)

# Configuration
CONFIG_ENV_VAR = "DBMIGRATE_CONFIG"
DATABASE_URL_ENV_VAR = "DBMIGRATE_DATABASE_URL"
MIGRATIONS_DIR_ENV_VAR = "DBMIGRATE_MIGRATIONS_DIR"
DEFAULT_CONFIG_FILENAME = "dbmigrate.toml"

# Logging configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
