"""Shared fixtures: an in-memory store, a loopback transport and a
notifier that records every alert."""

from __future__ import annotations

import json
from typing import Any

import pytest
import pytest_asyncio

from greenhouse_bridge.forwarder import Forwarder
from greenhouse_bridge.models import InboundMessage
from greenhouse_bridge.notify.simple import CallbackNotifier
from greenhouse_bridge.router import Router
from greenhouse_bridge.store.memory import MemoryStore
from greenhouse_bridge.transport.memory import MemoryTransport


def make_message(topic: str, data: dict[str, Any] | str) -> InboundMessage:
    payload = data.encode() if isinstance(data, str) else json.dumps(data).encode()
    return InboundMessage(topic=topic, payload=payload)


@pytest.fixture()
def alerts() -> list[tuple[str, str]]:
    return []


@pytest.fixture()
def notifier(alerts: list[tuple[str, str]]) -> CallbackNotifier:
    async def _record(title: str, body: str) -> None:
        alerts.append((title, body))

    return CallbackNotifier(_record)


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest_asyncio.fixture()
async def transport() -> MemoryTransport:
    t = MemoryTransport()
    await t.connect()
    return t


@pytest.fixture()
def forwarder(transport: MemoryTransport, store: MemoryStore) -> Forwarder:
    return Forwarder(transport, store, client_id="test_bridge")


@pytest.fixture()
def router(store: MemoryStore, forwarder: Forwarder, notifier: CallbackNotifier) -> Router:
    return Router(store, forwarder, notifier)
