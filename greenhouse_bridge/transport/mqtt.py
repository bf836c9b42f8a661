"""MQTT transport built on paho-mqtt (callback API v2).

paho runs its network loop in a background thread.  Every callback hops
back onto the asyncio loop with ``call_soon_threadsafe`` so connection
state and the inbound queue are only ever touched from the loop thread.
Reconnection is left to paho's own retry loop.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt

from greenhouse_bridge.errors import TransportError
from greenhouse_bridge.models import InboundMessage
from greenhouse_bridge.transport.base import ConnectionState, Transport, encode_payload

__all__ = ["MQTTTransport", "parse_broker_url"]

logger = logging.getLogger("greenhouse_bridge.transport.mqtt")

_DEFAULT_PORTS = {"mqtt": 1883, "tcp": 1883, "mqtts": 8883, "ssl": 8883, "tls": 8883}
_TLS_SCHEMES = frozenset({"mqtts", "ssl", "tls"})


def parse_broker_url(url: str) -> tuple[str, int, bool]:
    """Split ``mqtt[s]://host[:port]`` into ``(host, port, use_tls)``."""
    parts = urlsplit(url if "://" in url else f"mqtt://{url}")
    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        raise ValueError(f"Unsupported broker URL scheme '{scheme}' in {url!r}")
    if not parts.hostname:
        raise ValueError(f"Broker URL {url!r} has no host")
    return parts.hostname, parts.port or _DEFAULT_PORTS[scheme], scheme in _TLS_SCHEMES


class MQTTTransport(Transport):
    """Connect the bridge to an MQTT broker.

    Parameters:
        broker_url: ``mqtt://host:1883`` or ``mqtts://host:8883``.
        client_id: MQTT client identifier.
        username / password: Broker credentials (optional).
        keepalive: Keep-alive interval in seconds.
        qos: QoS for subscriptions and publishes.
        tls_insecure: Skip broker certificate verification.
        connect_timeout_s: How long :meth:`connect` waits for CONNACK.
        reconnect_min_delay_s / reconnect_max_delay_s: paho retry bounds.
    """

    def __init__(
        self,
        *,
        broker_url: str = "mqtt://localhost:1883",
        client_id: str = "greenhouse_bridge",
        username: str | None = None,
        password: str | None = None,
        keepalive: int = 30,
        qos: int = 1,
        tls_insecure: bool = False,
        connect_timeout_s: float = 10.0,
        reconnect_min_delay_s: int = 1,
        reconnect_max_delay_s: int = 5,
    ) -> None:
        super().__init__()
        self._host, self._port, self._tls = parse_broker_url(broker_url)
        self._client_id = client_id
        self._username = username
        self._password = password
        self._keepalive = keepalive
        self._qos = qos
        self._tls_insecure = tls_insecure
        self._connect_timeout = connect_timeout_s
        self._reconnect_delay = (reconnect_min_delay_s, reconnect_max_delay_s)
        self._topics: list[str] = []
        self._client: mqtt.Client | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._connected = asyncio.Event()

    @property
    def client_id(self) -> str:
        return self._client_id

    async def connect(self, will: tuple[str, Mapping[str, Any]] | None = None) -> None:
        self._loop = asyncio.get_running_loop()
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
            protocol=mqtt.MQTTv311,
            clean_session=True,
        )
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message

        if self._username:
            client.username_pw_set(self._username, self._password or "")
        if self._tls:
            client.tls_set()
            if self._tls_insecure:
                client.tls_insecure_set(True)
        if will is not None:
            will_topic, will_payload = will
            client.will_set(will_topic, encode_payload(will_payload), qos=self._qos)
        client.reconnect_delay_set(*self._reconnect_delay)

        self._client = client
        self._connected.clear()
        self._set_state(ConnectionState.CONNECTING)
        logger.info("Connecting to %s:%d as %s", self._host, self._port, self._client_id)

        try:
            await self._loop.run_in_executor(None, client.connect, self._host, self._port, self._keepalive)
        except OSError as exc:
            self._set_state(ConnectionState.DISCONNECTED)
            raise TransportError(f"Cannot reach broker {self._host}:{self._port}: {exc}") from exc
        client.loop_start()

        try:
            await asyncio.wait_for(self._connected.wait(), timeout=self._connect_timeout)
        except TimeoutError as exc:
            raise TransportError(f"No CONNACK from {self._host}:{self._port} within {self._connect_timeout}s") from exc

    async def subscribe(self, topics: Iterable[str]) -> None:
        for topic in topics:
            if topic not in self._topics:
                self._topics.append(topic)
        if self._client is not None and self.is_connected:
            self._subscribe_all(self._client)

    def _subscribe_all(self, client: mqtt.Client) -> None:
        for topic in self._topics:
            rc, _mid = client.subscribe(topic, qos=self._qos)
            if rc != mqtt.MQTT_ERR_SUCCESS:
                logger.error("Error subscribing to %s: %s", topic, mqtt.error_string(rc))
            else:
                logger.info("Subscribed to topic: %s", topic)

    async def publish(self, topic: str, data: Mapping[str, Any] | str | bytes, *, wait: bool = False) -> None:
        if self._client is None:
            raise TransportError("MQTTTransport is not connected")

        info = self._client.publish(topic, encode_payload(data), qos=self._qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(f"Publish to {topic} failed: {mqtt.error_string(info.rc)}")
        if wait:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, info.wait_for_publish, self._connect_timeout)
        logger.debug("Published to %s (mid=%s)", topic, info.mid)

    async def close(self) -> None:
        if self._client is not None:
            self._client.disconnect()
            self._client.loop_stop()
            self._client = None
            logger.info("MQTT connection closed")
        self._set_state(ConnectionState.DISCONNECTED)
        self._deliver(None)

    # ------------------------------------------------------------------
    # paho callbacks (network thread)
    # ------------------------------------------------------------------

    def _call_in_loop(self, callback: Any, *args: Any) -> None:
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(callback, *args)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code.is_failure:
            logger.error("Broker refused connection: %s", reason_code)
            self._call_in_loop(self._set_state, ConnectionState.DISCONNECTED)
            return
        logger.info("Connected to MQTT broker")
        # Clean sessions lose subscriptions, so renew them on every connect
        self._subscribe_all(client)
        self._call_in_loop(self._set_state, ConnectionState.CONNECTED)
        self._call_in_loop(self._connected.set)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        logger.warning("MQTT disconnected: %s", reason_code)
        self._call_in_loop(self._set_state, ConnectionState.DISCONNECTED)

    def _on_message(self, client, userdata, msg) -> None:
        message = InboundMessage(topic=msg.topic, payload=msg.payload, received_at=time.time())
        self._call_in_loop(self._deliver, message)
