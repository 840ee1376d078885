"""Drivers bundled with dbmigrate."""

from .shell import ShellDriver, ShellError
from .sqlite import SQLiteDriver

__all__ = ["SQLiteDriver", "ShellDriver", "ShellError"]
