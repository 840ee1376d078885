"""Registry mapping URL schemes to driver factories."""

import logging
import re
from typing import Callable

from ..errors import ConfigurationError, MigrateError
from ..scanner import normalize_extension
from .base import Driver

logger = logging.getLogger(__name__)

DriverFactory = Callable[[str], Driver]

_SCHEME_RE = re.compile(r"^(\w+)://")


def get_scheme(url: str) -> str | None:
    """
    Get the scheme of a URL-like connection string.

    Examples:
        sqlite3:///tmp/app.db -> sqlite3
        postgres://user@host/db -> postgres

    Args:
        url: Connection URL

    Returns:
        Scheme name, or None if the URL has none
    """
    match = _SCHEME_RE.match(url)
    return match.group(1) if match else None


class DriverRegistry:
    """Drivers available to the engine, keyed by URL scheme.

    Build one registry at process start, register the drivers on it and
    pass it to open_handle().
    """

    def __init__(self) -> None:
        self._factories: dict[str, DriverFactory] = {}

    def register(self, scheme: str, factory: DriverFactory) -> None:
        """
        Register a driver factory for a scheme.

        Args:
            scheme: URL scheme, e.g. "sqlite3"
            factory: Callable taking the full URL and returning a Driver

        Raises:
            ConfigurationError: If the factory is missing or the scheme is taken
        """
        if factory is None:
            raise ConfigurationError(f"Tried to register nil driver factory {scheme!r}")
        if not scheme:
            raise ConfigurationError("Driver scheme must not be empty")
        if scheme in self._factories:
            raise ConfigurationError(f"Driver {scheme!r} is already registered")

        self._factories[scheme] = factory
        logger.debug(f"Registered driver {scheme!r}")

    def schemes(self) -> list[str]:
        """Sorted names of the registered schemes."""
        return sorted(self._factories)

    def open(self, url: str) -> Driver:
        """
        Create a driver for the given URL.

        Raises:
            ConfigurationError: If the URL has no scheme, no driver is registered for it
                or the driver fails to connect
        """
        scheme = get_scheme(url)
        if scheme is None:
            raise ConfigurationError(f"no scheme found in {url!r}")

        factory = self._factories.get(scheme)
        if factory is None:
            raise ConfigurationError(f"driver {scheme!r} not found")

        try:
            driver = factory(url)
        except MigrateError:
            raise
        except Exception as e:
            raise ConfigurationError(f"failed to open driver {scheme!r}: {e}") from e

        try:
            normalize_extension(driver.extension)
        except ConfigurationError:
            driver.close()
            raise
        return driver


def register_builtin_drivers(registry: DriverRegistry) -> DriverRegistry:
    """
    Register the drivers bundled with dbmigrate.

    Args:
        registry: Registry to populate

    Returns:
        The same registry
    """
    from ..drivers.shell import ShellDriver
    from ..drivers.sqlite import SQLiteDriver

    registry.register("sqlite3", SQLiteDriver)
    registry.register("shell", ShellDriver)
    return registry
