"""Persistence backends for the bridge.

::

    from greenhouse_bridge.store import MemoryStore, create_store
"""

from __future__ import annotations

import importlib
from typing import Any

from greenhouse_bridge.store.base import HistoryIdGenerator, Store, StorePaths
from greenhouse_bridge.store.factory import create_store, register_store
from greenhouse_bridge.store.memory import MemoryStore

# DatabaseStore needs the ``database`` extra and is loaded lazily.

__all__ = [
    "HistoryIdGenerator",
    "MemoryStore",
    "Store",
    "StorePaths",
    "create_store",
    "register_store",
]


def __getattr__(name: str) -> Any:
    """Lazy-import stores that require optional dependencies."""
    if name == "DatabaseStore":
        return importlib.import_module("greenhouse_bridge.store.database").DatabaseStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
