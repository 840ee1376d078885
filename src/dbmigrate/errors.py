"""Exception hierarchy for dbmigrate."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .file import File


class MigrateError(Exception):
    """Base class for every error raised by dbmigrate."""

    pass


class ConfigurationError(MigrateError):
    """
    Raised when the engine cannot be set up.

    This covers connection URLs without a scheme, schemes with no registered
    driver, invalid driver registrations and empty file extensions. These
    errors are raised before any I/O happens.
    """

    pass


class DiscoveryError(MigrateError):
    """Raised when the migrations directory cannot be scanned."""

    pass


class DuplicateMigrationError(DiscoveryError):
    """Raised when two files claim the same version and direction."""

    def __init__(self, version: int, first: str, second: str):
        self.version = version
        self.filenames = (first, second)
        super().__init__(f"duplicate migration file version {version}: {first!r} and {second!r}")


class LockError(MigrateError):
    """Raised when the advisory lock cannot be acquired."""

    pass


class DriverError(MigrateError):
    """Raised when a driver fails to report the applied versions."""

    pass


class OperationCancelledError(MigrateError):
    """
    Raised when a context is canceled or its deadline passes.

    When raised in front of a migration step, ``version`` holds the version
    that was about to be applied.
    """

    def __init__(self, message: str, version: int | None = None):
        self.version = version
        super().__init__(message)


class VersionStateError(MigrateError):
    """Raised when a specific version cannot be applied or rolled back."""

    pass


class MigrationStepError(MigrateError):
    """
    Raised when a single migration step fails.

    Steps applied before the failing one are left in place. The failing
    file is available as ``file`` and the original error as ``__cause__``.
    """

    def __init__(self, file: File, message: str):
        self.file = file
        self.version = file.version
        self.name = file.name
        super().__init__(message)


class HookError(MigrationStepError):
    """Raised when a pre- or post-migration hook fails."""

    def __init__(self, file: File, hook: str, error: Exception):
        self.hook = hook
        super().__init__(file, f"{hook}-hook for migration {file.filename!r} failed: {error}")


class HandlePoisonedError(MigrateError):
    """Raised by every call on a handle that failed to release its lock."""

    pass


class TemplateRenderError(MigrateError):
    """Raised when a ``.tpl`` migration file cannot be rendered."""

    pass


class ScriptParseError(MigrateError):
    """Raised when transaction directives in a script are malformed."""

    def __init__(self, message: str, line: int):
        self.line = line
        super().__init__(f"{message} at line {line}")


class ScriptExecutionError(MigrateError):
    """Raised when a statement of a migration script fails."""

    def __init__(
        self,
        message: str,
        line: int,
        statement: str,
        column: int | None = None,
        context: str | None = None,
    ):
        self.line = line
        self.statement = statement
        self.column = column
        self.context = context
        super().__init__(message)


class TransactionBlockError(ScriptExecutionError):
    """Raised when a TXBEGIN/TXEND segment fails and is rolled back."""

    def __init__(
        self,
        message: str,
        begin_line: int,
        end_line: int,
        line: int,
        statement: str,
        column: int | None = None,
        context: str | None = None,
    ):
        self.begin_line = begin_line
        self.end_line = end_line
        super().__init__(message, line, statement, column=column, context=context)
