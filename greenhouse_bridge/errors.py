"""Exception hierarchy shared by the bridge and its collaborators."""

from __future__ import annotations

__all__ = ["BridgeError", "NotificationError", "StoreError", "TransportError"]


class BridgeError(Exception):
    """Base class for every error raised by ``greenhouse_bridge``."""


class TransportError(BridgeError):
    """Publishing or subscribing on the message transport failed."""


class StoreError(BridgeError):
    """A persistence read or write failed."""


class NotificationError(BridgeError):
    """A notification could not be handed to the delivery backend."""
