"""Driver contract and registry."""

from .base import Capability, Driver
from .registry import DriverFactory, DriverRegistry, get_scheme, register_builtin_drivers

__all__ = [
    "Capability",
    "Driver",
    "DriverFactory",
    "DriverRegistry",
    "get_scheme",
    "register_builtin_drivers",
]
