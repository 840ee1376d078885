"""dbmigrate: versioned schema migrations with locking and transaction directives."""

__version__ = "0.1.0"

from .constants import Direction
from .context import Context
from .driver import Capability, Driver, DriverRegistry, register_builtin_drivers
from .errors import (
    ConfigurationError,
    DiscoveryError,
    DriverError,
    DuplicateMigrationError,
    HandlePoisonedError,
    HookError,
    LockError,
    MigrateError,
    MigrationStepError,
    OperationCancelledError,
    ScriptExecutionError,
    ScriptParseError,
    TemplateRenderError,
    TransactionBlockError,
    VersionStateError,
)
from .file import File, MigrationFile, MigrationFiles, Versions
from .migrate import Handle, HandleState, open_handle

__all__ = [
    "__version__",
    "Capability",
    "ConfigurationError",
    "Context",
    "Direction",
    "DiscoveryError",
    "Driver",
    "DriverError",
    "DriverRegistry",
    "DuplicateMigrationError",
    "File",
    "Handle",
    "HandlePoisonedError",
    "HandleState",
    "HookError",
    "LockError",
    "MigrateError",
    "MigrationFile",
    "MigrationFiles",
    "MigrationStepError",
    "OperationCancelledError",
    "ScriptExecutionError",
    "ScriptParseError",
    "TemplateRenderError",
    "TransactionBlockError",
    "VersionStateError",
    "Versions",
    "open_handle",
    "register_builtin_drivers",
]
