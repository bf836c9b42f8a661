"""Alert delivery backends.

::

    from greenhouse_bridge.notify import LogNotifier, create_notifier
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from greenhouse_bridge.notify.base import NotificationResult, Notifier
from greenhouse_bridge.notify.simple import CallbackNotifier, LogNotifier

# WebhookNotifier needs the ``notify`` extra and is loaded lazily.

__all__ = [
    "CallbackNotifier",
    "LogNotifier",
    "NotificationResult",
    "Notifier",
    "create_notifier",
]

logger = logging.getLogger("greenhouse_bridge.notify")

_NOTIFIER_REGISTRY: dict[str, tuple[str, str]] = {
    "log": ("greenhouse_bridge.notify.simple", "LogNotifier"),
    "webhook": ("greenhouse_bridge.notify.webhook", "WebhookNotifier"),
}


def create_notifier(config: dict[str, Any]) -> Notifier:
    """Create a notifier from a config dict with a ``"type"`` key (default ``log``)."""
    config = dict(config)
    notifier_type = str(config.pop("type", "log")).lower().strip()
    if notifier_type not in _NOTIFIER_REGISTRY:
        raise ValueError(f"Unknown notifier type '{notifier_type}'.  Available: {sorted(_NOTIFIER_REGISTRY)}")

    module_path, class_name = _NOTIFIER_REGISTRY[notifier_type]
    cls = getattr(importlib.import_module(module_path), class_name)
    logger.debug("Creating %s", class_name)
    return cls(**config)


def __getattr__(name: str) -> Any:
    """Lazy-import notifiers that require optional dependencies."""
    if name == "WebhookNotifier":
        return importlib.import_module("greenhouse_bridge.notify.webhook").WebhookNotifier
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
