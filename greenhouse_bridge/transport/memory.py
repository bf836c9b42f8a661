"""In-memory transport.

Records everything the bridge publishes and lets callers inject inbound
messages.  Used by the test-suite and for dry runs without a broker.
"""

from __future__ import annotations

import json
import time
from collections.abc import Iterable, Mapping
from typing import Any

from greenhouse_bridge.errors import TransportError
from greenhouse_bridge.models import InboundMessage
from greenhouse_bridge.transport.base import ConnectionState, Transport, encode_payload

__all__ = ["MemoryTransport"]


class MemoryTransport(Transport):
    """Loopback :class:`Transport`.

    Attributes:
        published: ``(topic, payload)`` pairs in publish order; JSON
            payloads are decoded back into dicts.
        subscriptions: Topics passed to :meth:`subscribe`.
        will: The last-will registered on :meth:`connect`.
        fail_publish: When ``True`` every publish raises ``TransportError``.
    """

    def __init__(self, *, fail_publish: bool = False) -> None:
        super().__init__()
        self.published: list[tuple[str, Any]] = []
        self.subscriptions: list[str] = []
        self.will: tuple[str, Mapping[str, Any]] | None = None
        self.fail_publish = fail_publish

    async def connect(self, will: tuple[str, Mapping[str, Any]] | None = None) -> None:
        self.will = will
        self._set_state(ConnectionState.CONNECTED)

    async def subscribe(self, topics: Iterable[str]) -> None:
        self.subscriptions.extend(topics)

    async def publish(self, topic: str, data: Mapping[str, Any] | str | bytes, *, wait: bool = False) -> None:
        if self.fail_publish:
            raise TransportError(f"publish to {topic} failed")
        raw = encode_payload(data)
        try:
            payload: Any = json.loads(raw)
        except ValueError:
            payload = raw
        self.published.append((topic, payload))

    async def close(self) -> None:
        self._set_state(ConnectionState.DISCONNECTED)
        self._deliver(None)

    def inject(self, topic: str, payload: Mapping[str, Any] | str | bytes) -> InboundMessage:
        """Queue *payload* as if it had arrived from the broker on *topic*."""
        message = InboundMessage(topic=topic, payload=encode_payload(payload), received_at=time.time())
        self._deliver(message)
        return message

    def published_on(self, topic: str) -> list[Any]:
        """Payloads published on *topic*, oldest first."""
        return [payload for t, payload in self.published if t == topic]
