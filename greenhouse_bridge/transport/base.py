"""Transport abstraction.

Provides:
- ``Transport``       - abstract base class for publish/subscribe clients.
- ``ConnectionState`` - explicit connection state held by each transport.

Inbound deliveries are queued on the event loop and consumed one at a time
through :meth:`Transport.messages`, which preserves delivery order and
guarantees that handlers never overlap.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterable, Mapping
from enum import StrEnum
from typing import Any

from greenhouse_bridge.models import InboundMessage

__all__ = ["ConnectionState", "Transport", "encode_payload"]

logger = logging.getLogger("greenhouse_bridge.transport")


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def encode_payload(data: Mapping[str, Any] | str | bytes) -> bytes:
    """Serialise an outbound payload.  Mappings become compact JSON."""
    if isinstance(data, bytes):
        return data
    if isinstance(data, str):
        return data.encode("utf-8")
    return json.dumps(data, separators=(",", ":"), default=str).encode("utf-8")


class Transport(ABC):
    """Abstract base class for all transports.

    Concrete transports implement ``connect``, ``subscribe``, ``publish``
    and ``close``, and call :meth:`_deliver` on the event loop for every
    inbound message.
    """

    def __init__(self) -> None:
        self._state = ConnectionState.DISCONNECTED
        self._inbox: asyncio.Queue[InboundMessage | None] = asyncio.Queue()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.debug("%s: %s -> %s", type(self).__name__, self._state, state)
            self._state = state

    @abstractmethod
    async def connect(self, will: tuple[str, Mapping[str, Any]] | None = None) -> None:
        """Connect to the broker.

        *will* is an optional ``(topic, payload)`` the broker publishes on
        our behalf if the connection drops without a clean close.
        """

    @abstractmethod
    async def subscribe(self, topics: Iterable[str]) -> None:
        """Subscribe to *topics* (kept across reconnects)."""

    @abstractmethod
    async def publish(self, topic: str, data: Mapping[str, Any] | str | bytes, *, wait: bool = False) -> None:
        """Publish *data* on *topic*.

        Raises :class:`~greenhouse_bridge.errors.TransportError` when the
        message cannot be queued.  With ``wait=True`` return only after
        the broker acknowledged it.
        """

    @abstractmethod
    async def close(self) -> None:
        """Disconnect and stop :meth:`messages`."""

    # -- inbound --

    def _deliver(self, message: InboundMessage | None) -> None:
        """Queue an inbound message (``None`` ends the stream)."""
        self._inbox.put_nowait(message)

    def stop_receiving(self) -> None:
        """End :meth:`messages` after the messages already queued, leaving
        the connection open for publishing."""
        self._deliver(None)

    async def messages(self) -> AsyncIterator[InboundMessage]:
        """Yield inbound messages in delivery order until :meth:`close`."""
        while True:
            message = await self._inbox.get()
            if message is None:
                return
            yield message
