"""Publish/subscribe transports for the bridge.

::

    from greenhouse_bridge.transport import MemoryTransport
    from greenhouse_bridge.transport.mqtt import MQTTTransport
"""

from __future__ import annotations

import importlib
from typing import Any

from greenhouse_bridge.transport.base import ConnectionState, Transport, encode_payload
from greenhouse_bridge.transport.memory import MemoryTransport

__all__ = [
    "ConnectionState",
    "MemoryTransport",
    "Transport",
    "encode_payload",
]


def __getattr__(name: str) -> Any:
    """Import the paho-backed transport on first use."""
    if name == "MQTTTransport":
        return importlib.import_module("greenhouse_bridge.transport.mqtt").MQTTTransport
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
