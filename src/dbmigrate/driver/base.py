"""Driver interface consumed by the migration engine."""

from abc import ABC, abstractmethod
from enum import Enum

from ..file import File, Versions


class Capability(str, Enum):
    """Optional driver capabilities.

    Attributes:
        LOCK: Driver provides an exclusive advisory lock
        FILE_TEMPLATE: Driver provides seed content for new migration files
    """

    LOCK = "lock"
    FILE_TEMPLATE = "file_template"


class Driver(ABC):
    """Base class for storage adapters.

    Subclasses declare the migration file extension and the optional
    capabilities they implement. The engine asks supports() instead of
    inspecting the driver type.
    """

    extension: str
    capabilities: frozenset[Capability] = frozenset()

    def supports(self, capability: Capability) -> bool:
        """Whether the driver declares the given capability."""
        return capability in self.capabilities

    @abstractmethod
    def close(self) -> None:
        """Close any open connection. Last call made on a driver."""
        pass

    @abstractmethod
    def migrate(self, file: File) -> None:
        """
        Apply or roll back one migration file.

        Must update the bookkeeping of applied versions as part of the
        same operation.

        Args:
            file: Up or down migration file
        """
        pass

    @abstractmethod
    def version(self) -> int:
        """Return the highest applied version, or 0 if none."""
        pass

    @abstractmethod
    def versions(self) -> Versions:
        """Return all applied versions, most recent first."""
        pass

    @abstractmethod
    def execute(self, statement: str) -> None:
        """Run one statement outside the migration flow."""
        pass

    def lock(self) -> None:
        """Acquire the exclusive advisory lock. Blocks until granted."""
        pass

    def unlock(self) -> None:
        """Release the advisory lock."""
        pass

    def file_template(self) -> bytes:
        """Seed content for newly created migration files."""
        return b""
