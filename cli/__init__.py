"""Command line tools for the sensor data cache."""

from importlib import import_module
from types import ModuleType


# ``cli.app`` is imported on first access so ``import cli`` does not pull in the
# service stack.
def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)


__all__ = []
