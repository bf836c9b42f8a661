"""Store factory – creates store instances from configuration dicts.

Used by the config-driven mode to pick a backend declaratively::

    store:
      type: database
      connection_string: sqlite+aiosqlite:///greenhouse.db
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from greenhouse_bridge.store.base import Store

__all__ = ["create_store", "register_store"]

logger = logging.getLogger("greenhouse_bridge.store.factory")

# Registry of type names → (module_path, class_name)
_STORE_REGISTRY: dict[str, tuple[str, str]] = {
    "memory": ("greenhouse_bridge.store.memory", "MemoryStore"),
    "database": ("greenhouse_bridge.store.database", "DatabaseStore"),
}


def create_store(config: dict[str, Any]) -> Store:
    """Create a store instance from a configuration dict.

    The ``"type"`` key selects a registered backend (default ``memory``);
    all other keys are forwarded to its constructor.

    Returns:
        A :class:`Store` instance (not yet connected).
    """
    config = dict(config)  # shallow copy
    store_type = str(config.pop("type", "memory")).lower().strip()

    if store_type not in _STORE_REGISTRY:
        raise ValueError(f"Unknown store type '{store_type}'.  Available: {sorted(_STORE_REGISTRY)}")

    module_path, class_name = _STORE_REGISTRY[store_type]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)

    logger.debug("Creating %s with config: %s", class_name, config)
    return cls(**config)


def register_store(name: str, module_path: str, class_name: str) -> None:
    """Register a custom store type for config-driven instantiation.

    Example::

        from greenhouse_bridge.store.factory import register_store
        register_store("firebase", "mypackage.stores", "FirebaseStore")
    """
    _STORE_REGISTRY[name.lower().strip()] = (module_path, class_name)
