"""Migration engine: locking, sequencing and hooks around a driver."""

import logging
from collections.abc import Iterator
from concurrent import futures
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Callable

from .constants import LOCK_POLL_INTERVAL, LOCK_WORKER_THREADS, Direction
from .context import Context
from .create import create_migration
from .driver import Capability, Driver, DriverRegistry
from .errors import (
    ConfigurationError,
    DriverError,
    HandlePoisonedError,
    HookError,
    LockError,
    MigrationStepError,
    OperationCancelledError,
    VersionStateError,
)
from .file import File, MigrationFile, MigrationFiles, Versions
from .scanner import filename_regex, read_migration_files

logger = logging.getLogger(__name__)

Hook = Callable[[File], None]


class HandleState(str, Enum):
    """Lifecycle of a Handle.

    Attributes:
        READY: No lock held
        LOCKED: Lock held for the running operation
        POISONED: Unlocking failed; the handle is closed and unusable
    """

    READY = "ready"
    LOCKED = "locked"
    POISONED = "poisoned"


class Handle:
    """Applies migrations from a directory through one driver.

    Every public operation holds the driver's advisory lock for its whole
    duration; nested operations (redo, reset) reuse the outer hold.
    Migration files and applied versions are re-read on every call.
    """

    def __init__(
        self,
        driver: Driver,
        migrations_path: Path,
        pre_hook: Hook | None = None,
        post_hook: Hook | None = None,
    ):
        """
        Initialize handle.

        Args:
            driver: Open driver; the handle owns it from now on
            migrations_path: Directory holding migration files
            pre_hook: Called with each file before it is migrated
            post_hook: Called with each file after it was migrated
        """
        if driver is None:
            raise ConfigurationError("driver can't be None")

        self.driver = driver
        self.migrations_path = Path(migrations_path)
        self.pre_hook = pre_hook
        self.post_hook = post_hook
        self.state = HandleState.READY
        self.fatal_error: HandlePoisonedError | None = None
        self._closed = False
        # At most one driver.lock() call is in flight per handle.
        self._abandoned_lock: futures.Future | None = None
        self._pool = futures.ThreadPoolExecutor(
            max_workers=LOCK_WORKER_THREADS, thread_name_prefix="dbmigrate-lock"
        )

    def __enter__(self) -> "Handle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def up(self, ctx: Context | None = None) -> None:
        """Apply all pending migrations."""
        ctx = ctx or Context.background()
        with self._locking(ctx):
            files, versions = self._read_files_and_versions()
            self._run_files(ctx, files.pending(versions))

    def down(self, ctx: Context | None = None) -> None:
        """Roll back all applied migrations."""
        ctx = ctx or Context.background()
        with self._locking(ctx):
            files, versions = self._read_files_and_versions()
            self._run_files(ctx, files.applied(versions))

    def migrate(self, relative_n: int, ctx: Context | None = None) -> None:
        """
        Apply (+n) or roll back (-n) migrations relative to the current state.

        Args:
            relative_n: Number of steps; more than available is clamped
            ctx: Cancellation context
        """
        ctx = ctx or Context.background()
        with self._locking(ctx):
            files, versions = self._read_files_and_versions()
            self._run_files(ctx, files.relative(relative_n, versions))

    def redo(self, ctx: Context | None = None) -> None:
        """Roll back the most recent migration, then apply the next pending one."""
        ctx = ctx or Context.background()
        with self._locking(ctx):
            self.migrate(-1, ctx)
            self.migrate(+1, ctx)

    def reset(self, ctx: Context | None = None) -> None:
        """Roll back everything, then apply everything."""
        ctx = ctx or Context.background()
        with self._locking(ctx):
            self.down(ctx)
            self.up(ctx)

    def apply_version(self, version: int, ctx: Context | None = None) -> None:
        """Apply the up migration of a specific version."""
        self._migrate_version(version, Direction.UP, ctx or Context.background())

    def rollback_version(self, version: int, ctx: Context | None = None) -> None:
        """Run the down migration of a specific version."""
        self._migrate_version(version, Direction.DOWN, ctx or Context.background())

    def version(self, ctx: Context | None = None) -> int:
        """Return the highest applied version, or 0."""
        with self._locking(ctx or Context.background()):
            try:
                return self.driver.version()
            except Exception as e:
                raise DriverError(f"failed to read current version: {e}") from e

    def versions(self, ctx: Context | None = None) -> Versions:
        """Return all applied versions, most recent first."""
        with self._locking(ctx or Context.background()):
            return self._applied_versions()

    def pending_migrations(self, ctx: Context | None = None) -> list[File]:
        """Return the up files that would be applied by up()."""
        with self._locking(ctx or Context.background()):
            files, versions = self._read_files_and_versions()
            return files.pending(versions)

    def create(self, name: str) -> MigrationFile:
        """
        Create a new pair of migration files.

        Only touches the filesystem; no lock is taken.

        Args:
            name: Human-readable migration name

        Returns:
            MigrationFile with the created up and down files
        """
        self._check_usable()
        template = b""
        if self.driver.supports(Capability.FILE_TEMPLATE):
            template = self.driver.file_template()
        return create_migration(self.migrations_path, name, self.driver.extension, template)

    def close(self) -> None:
        """Close the driver connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        # Let an abandoned lock wait finish before the connection goes away.
        abandoned, self._abandoned_lock = self._abandoned_lock, None
        self._pool.shutdown(wait=True)
        if abandoned is not None:
            self._release_abandoned_lock(abandoned)
        self.driver.close()

    def _migrate_version(self, version: int, direction: Direction, ctx: Context) -> None:
        with self._locking(ctx):
            files, versions = self._read_files_and_versions()
            if direction is Direction.UP and version in versions:
                raise VersionStateError(f"version {version} is already applied")
            if direction is Direction.DOWN and version not in versions:
                raise VersionStateError(f"version {version} is not applied")

            migration = next((mf for mf in files if mf.version == version), None)
            target = migration.file_for(direction) if migration is not None else None
            if target is None:
                raise VersionStateError(f"no {direction.value!r} migration file for version {version}")

            self._run_files(ctx, [target])

    def _read_files_and_versions(self) -> tuple[MigrationFiles, Versions]:
        files = read_migration_files(self.migrations_path, filename_regex(self.driver.extension))
        return files, self._applied_versions()

    def _applied_versions(self) -> Versions:
        try:
            return Versions(self.driver.versions())
        except Exception as e:
            raise DriverError(f"failed to read applied versions: {e}") from e

    def _run_files(self, ctx: Context, files: list[File]) -> None:
        for f in files:
            self._run_file(ctx, f)

    def _run_file(self, ctx: Context, f: File) -> None:
        if ctx.done():
            raise OperationCancelledError(
                f"interrupted before applying version {f.version}: {ctx.reason}", version=f.version
            )

        self._run_hook(self.pre_hook, "pre", f)

        logger.info(f"Running {f.direction.value} migration {f.version}: {f.name}")
        try:
            self.driver.migrate(f)
        except Exception as e:
            raise MigrationStepError(
                f, f"{f.direction.value} migration {f.version} ({f.name}) failed: {e}"
            ) from e

        self._run_hook(self.post_hook, "post", f)

    def _run_hook(self, hook: Hook | None, name: str, f: File) -> None:
        if hook is None:
            return
        try:
            hook(f)
        except Exception as e:
            raise HookError(f, name, e) from e

    def _check_usable(self) -> None:
        # Each call raises a new error chained to the unlock failure.
        if self.fatal_error is not None:
            raise HandlePoisonedError(str(self.fatal_error)) from self.fatal_error.__cause__

    @contextmanager
    def _locking(self, ctx: Context) -> Iterator[None]:
        """Hold the lock for the duration of the block, reentrant per handle."""
        self._check_usable()
        if self.state is HandleState.LOCKED:
            yield
            return

        self._lock(ctx)
        try:
            yield
        except BaseException:
            self._unlock(raise_on_failure=False)
            raise
        self._unlock(raise_on_failure=True)

    def _lock(self, ctx: Context) -> None:
        if ctx.done():
            raise LockError(f"gave up waiting for migration lock: {ctx.reason}") from ctx.error()

        if self.driver.supports(Capability.LOCK):
            self._wait_for_lock(ctx)

        self.state = HandleState.LOCKED
        logger.debug("Migration lock acquired")

    def _wait_for_lock(self, ctx: Context) -> None:
        """
        Race the driver's lock wait against ctx; the first to finish decides.

        A wait abandoned by an earlier operation is resumed instead of
        starting a second driver.lock() call, so its grant is taken over.
        """
        lock_wait = self._abandoned_lock
        self._abandoned_lock = None
        if lock_wait is None or (lock_wait.done() and lock_wait.exception() is not None):
            lock_wait = self._pool.submit(self.driver.lock)
        else:
            logger.debug("Resuming abandoned migration lock wait")

        while True:
            done, _ = futures.wait([lock_wait], timeout=LOCK_POLL_INTERVAL)
            if done:
                break
            if ctx.done():
                self._abandoned_lock = lock_wait
                raise LockError(f"gave up waiting for migration lock: {ctx.reason}") from ctx.error()

        error = lock_wait.exception()
        if error is not None:
            raise LockError(f"failed to acquire migration lock: {error}") from error

    def _release_abandoned_lock(self, lock_wait: futures.Future) -> None:
        if lock_wait.exception() is not None:
            return
        logger.warning("Migration lock granted after the wait was abandoned, releasing it")
        try:
            self.driver.unlock()
        except Exception as e:
            logger.warning(f"Failed to release abandoned migration lock: {e}")

    def _unlock(self, raise_on_failure: bool) -> None:
        if not self.driver.supports(Capability.LOCK):
            self.state = HandleState.READY
            return

        try:
            self.driver.unlock()
        except Exception as e:
            self._poison(e)
            if raise_on_failure:
                self._check_usable()
            return

        self.state = HandleState.READY
        logger.debug("Migration lock released")

    def _poison(self, error: Exception) -> None:
        logger.warning(f"Failed to release migration lock, closing handle: {error}")
        self.state = HandleState.POISONED
        self.fatal_error = HandlePoisonedError(
            "connection closed, this handle is no longer usable - "
            f"failed to unlock database after last session: {error}"
        )
        self.fatal_error.__cause__ = error
        try:
            self.close()
        except Exception as e:
            logger.warning(f"Failed to close driver after unlock failure: {e}")


def open_handle(
    url: str,
    migrations_path: Path,
    registry: DriverRegistry,
    pre_hook: Hook | None = None,
    post_hook: Hook | None = None,
) -> Handle:
    """
    Open a driver for the URL and wrap it in a Handle.

    Args:
        url: Connection URL whose scheme selects the driver
        migrations_path: Directory holding migration files
        registry: Registry with the available drivers
        pre_hook: Called with each file before it is migrated
        post_hook: Called with each file after it was migrated

    Returns:
        New handle; close it when done

    Raises:
        ConfigurationError: If no driver matches the URL
    """
    driver = registry.open(url)
    return Handle(driver, migrations_path, pre_hook=pre_hook, post_hook=post_hook)
