"""Bridge - top-level session that wires the transport, the store and the
notifier to the router, and owns the process lifecycle.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import time
from typing import Any

from greenhouse_bridge import topics
from greenhouse_bridge.config import BridgeConfig
from greenhouse_bridge.forwarder import Forwarder
from greenhouse_bridge.notify import create_notifier
from greenhouse_bridge.notify.base import Notifier
from greenhouse_bridge.notify.simple import LogNotifier
from greenhouse_bridge.router import Router
from greenhouse_bridge.store import create_store
from greenhouse_bridge.store.base import Store
from greenhouse_bridge.store.memory import MemoryStore
from greenhouse_bridge.transport.base import ConnectionState, Transport

__all__ = ["Bridge"]

logger = logging.getLogger("greenhouse_bridge")


class Bridge:
    """One running bridge: a single transport connection and a single store.

    Example::

        from greenhouse_bridge import Bridge, BridgeConfig

        bridge = Bridge.from_config(BridgeConfig())
        bridge.run()

    Inbound messages are processed strictly one at a time in delivery
    order; the next message is not taken off the queue until the router
    has finished with the previous one.

    Parameters:
        transport: Publish/subscribe client.
        store: Persistence backend (default: :class:`MemoryStore`).
        notifier: Alert backend (default: :class:`LogNotifier`).
        config: Thresholds, auto-control and path settings.
        client_id: Identifier announced in bridge status messages.
    """

    def __init__(
        self,
        *,
        transport: Transport,
        store: Store | None = None,
        notifier: Notifier | None = None,
        config: BridgeConfig | None = None,
        client_id: str | None = None,
    ) -> None:
        self._config = config or BridgeConfig()
        self.client_id = client_id or self._config.client_id
        self._transport = transport
        self._store = store or MemoryStore()
        self._notifier = notifier or LogNotifier()
        self._forwarder = Forwarder(
            transport,
            self._store,
            paths=self._config.paths,
            client_id=self.client_id,
        )
        self._router = Router(
            self._store,
            self._forwarder,
            self._notifier,
            thresholds=self._config.thresholds,
            auto_control=self._config.auto_control,
            paths=self._config.paths,
        )
        self._started = False

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._transport.state

    @property
    def router(self) -> Router:
        return self._router

    @property
    def forwarder(self) -> Forwarder:
        return self._forwarder

    @property
    def store(self) -> Store:
        return self._store

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Connect the store, the notifier and the transport, subscribe and
        announce the bridge as online."""
        await self._store.connect()
        await self._notifier.connect()

        will = (topics.BRIDGE_STATUS, self._forwarder.bridge_status("offline").to_dict())
        await self._transport.connect(will=will)
        await self._transport.subscribe(topics.SUBSCRIPTIONS)
        await self._forwarder.publish_bridge_status("online")
        self._started = True
        logger.info("Bridge %s is running (%d topics)", self.client_id, len(topics.SUBSCRIPTIONS))

    async def stop(self) -> None:
        """Announce the bridge as offline and release every collaborator."""
        if self._started:
            await self._forwarder.publish_bridge_status("offline")
        self._started = False

        for name, closer in (
            ("transport", self._transport.close),
            ("notifier", self._notifier.close),
            ("store", self._store.close),
        ):
            try:
                await closer()
            except Exception:
                logger.exception("Error closing %s", name)
        logger.info("Bridge shutdown complete")

    async def process_messages(self) -> None:
        """Route inbound messages until the transport is closed."""
        async for message in self._transport.messages():
            await self._router.route(message)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Blocking entry point - runs until SIGINT/SIGTERM."""
        try:
            asyncio.run(self.run_async())
        except KeyboardInterrupt:
            logger.info("Interrupted by user")

    async def run_async(self, stop_event: asyncio.Event | None = None) -> None:
        """Async entry point - runs inside an existing event loop.

        Stops when *stop_event* is set, on SIGINT/SIGTERM, or when the
        transport closes.
        """
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(_log_unhandled)

        stop_event = stop_event or asyncio.Event()
        # NotImplementedError: raised on Windows where signal handlers are unsupported.
        # RuntimeError: raised when running in a non-main thread.
        installed: list[signal.Signals] = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, stop_event.set)
                installed.append(sig)

        consumer: asyncio.Task[None] | None = None
        waiter = asyncio.create_task(stop_event.wait(), name="bridge-stop")
        try:
            await self.start()
            consumer = asyncio.create_task(self.process_messages(), name="bridge-router")
            await asyncio.wait({consumer, waiter}, return_when=asyncio.FIRST_COMPLETED)
            if stop_event.is_set():
                logger.info("Stop signal received - shutting down")
        finally:
            waiter.cancel()
            # Drain the queue while the store and the transport are still open
            if consumer is not None:
                self._transport.stop_receiving()
                with contextlib.suppress(asyncio.CancelledError):
                    await consumer
            await self.stop()
            for sig in installed:
                loop.remove_signal_handler(sig)
            stats = self._router.stats
            logger.info("Processed %d messages (%d failed)", stats["received"], stats["failed"])

    # ------------------------------------------------------------------
    # Alternative constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_config(cls, config: BridgeConfig) -> Bridge:
        """Build a bridge with an MQTT transport and the configured store
        and notifier."""
        from greenhouse_bridge.transport.mqtt import MQTTTransport

        client_id = f"{config.client_id}_{int(time.time() * 1000)}"
        transport = MQTTTransport(
            broker_url=config.mqtt.broker_url,
            client_id=client_id,
            username=config.mqtt.username,
            password=config.mqtt.password,
            keepalive=config.mqtt.keepalive,
            qos=config.mqtt.qos,
            tls_insecure=config.mqtt.tls_insecure,
        )
        return cls(
            transport=transport,
            store=create_store(config.store),
            notifier=create_notifier(config.notifier),
            config=config,
            client_id=client_id,
        )


def _log_unhandled(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """Log errors nobody awaited instead of letting them vanish."""
    logger.error("Unhandled error: %s", context.get("message"), exc_info=context.get("exception"))
