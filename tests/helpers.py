"""Recording driver and file helpers shared by the test modules."""

import threading
from pathlib import Path

from dbmigrate.constants import Direction
from dbmigrate.driver import Capability, Driver
from dbmigrate.file import File, Versions


class FakeDriver(Driver):
    """In-memory driver that records every call made by the engine."""

    extension = "sql"

    def __init__(self, url: str = "fake://", capabilities: frozenset[Capability] = frozenset()):
        self.url = url
        self.capabilities = capabilities
        self.applied: set[int] = set()
        self.calls: list[str] = []
        self.fail_versions: set[int] = set()
        self.lock_error: Exception | None = None
        self.unlock_error: Exception | None = None
        self.versions_error: Exception | None = None
        self.lock_gate: threading.Event | None = None
        self.closed = False

    def close(self) -> None:
        self.calls.append("close")
        self.closed = True

    def migrate(self, file: File) -> None:
        self.calls.append(f"{file.direction.value}:{file.version}")
        if file.version in self.fail_versions:
            raise RuntimeError(f"boom in {file.version}")
        if file.direction is Direction.UP:
            self.applied.add(file.version)
        else:
            self.applied.discard(file.version)

    def version(self) -> int:
        return self.versions().latest

    def versions(self) -> Versions:
        if self.versions_error is not None:
            raise self.versions_error
        return Versions(sorted(self.applied, reverse=True))

    def execute(self, statement: str) -> None:
        self.calls.append(f"execute:{statement}")

    def lock(self) -> None:
        self.calls.append("lock")
        if self.lock_gate is not None:
            self.lock_gate.wait()
        if self.lock_error is not None:
            raise self.lock_error

    def unlock(self) -> None:
        self.calls.append("unlock")
        if self.unlock_error is not None:
            raise self.unlock_error

    def file_template(self) -> bytes:
        return b"-- template\n"

    @property
    def migrate_calls(self) -> list[str]:
        return [call for call in self.calls if call.startswith(("up:", "down:"))]


def write_migrations(path: Path, *versions: int, extension: str = "sql") -> None:
    """Write an up/down pair named m<version> for each version."""
    path.mkdir(parents=True, exist_ok=True)
    for version in versions:
        for direction in ("up", "down"):
            (path / f"{version}_m{version}.{direction}.{extension}").write_text(
                f"-- {direction} {version}\n", encoding="utf-8"
            )
