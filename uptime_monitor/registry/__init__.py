"""Application registry implementations."""

from .base import ApplicationRegistry, Updater, is_due, is_schedulable
from .json_store import JsonFileRegistry
from .memory import InMemoryRegistry
from .seed import load_targets_file, seed_registry

__all__ = [
    "ApplicationRegistry",
    "InMemoryRegistry",
    "JsonFileRegistry",
    "Updater",
    "is_due",
    "is_schedulable",
    "load_targets_file",
    "seed_registry",
]
