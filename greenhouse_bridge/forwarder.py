"""Forwarder - republishes translated records to the opposite party.

Every publish is fire-and-forget: a failure is logged and reported as
``False`` to the caller, never raised and never retried.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

from greenhouse_bridge import topics
from greenhouse_bridge.models import (
    BridgeStatus,
    PumpCommand,
    PumpStatusUpdate,
    SensorRecord,
    SyncKind,
    iso_timestamp,
)
from greenhouse_bridge.store.base import Store, StorePaths
from greenhouse_bridge.transport.base import Transport

__all__ = ["Forwarder"]

logger = logging.getLogger("greenhouse_bridge.forwarder")


class Forwarder:
    """Publish bridge output on the transport.

    Parameters:
        transport: Connected :class:`Transport`.
        store: Store read when answering sync requests.
        paths: Store locations of the current records.
        client_id: Identifier announced in bridge status messages.
    """

    def __init__(
        self,
        transport: Transport,
        store: Store,
        *,
        paths: StorePaths | None = None,
        client_id: str = "greenhouse_bridge",
    ) -> None:
        self._transport = transport
        self._store = store
        self._paths = paths or StorePaths()
        self._client_id = client_id

    async def _publish(self, topic: str, data: Mapping[str, Any], *, wait: bool = False) -> bool:
        if not self._transport.is_connected:
            logger.warning("Transport not connected, cannot publish to %s", topic)
            return False
        try:
            await self._transport.publish(topic, data, wait=wait)
        except Exception:
            logger.exception("Error publishing to %s", topic)
            return False
        logger.debug("Published to %s", topic)
        return True

    # ------------------------------------------------------------------
    # Sensor records
    # ------------------------------------------------------------------

    async def forward_to_app(self, record: SensorRecord) -> bool:
        """Device reading -> app sensor topic."""
        sent = await self._publish(topics.APP_SENSOR_DATA, record.to_dict())
        if sent:
            logger.info("Forwarded sensor data to app")
        return sent

    async def forward_to_device(self, record: SensorRecord) -> bool:
        """App reading -> device sensor topic.

        The device echoes its state back, so both sides converge on the
        latest snapshot; receivers must tolerate their own data coming back.
        """
        sent = await self._publish(topics.SENSOR_DATA, record.to_dict())
        if sent:
            logger.info("Forwarded sensor data to device")
        return sent

    # ------------------------------------------------------------------
    # Pump
    # ------------------------------------------------------------------

    async def forward_pump_command(
        self,
        is_active: bool,
        original: Mapping[str, Any],
        *,
        source: str = "bridge_forward",
    ) -> bool:
        """Send a pump command envelope to the device control topic."""
        command = PumpCommand(
            action="on" if is_active else "off",
            timestamp=iso_timestamp(time.time()),
            source=source,
            command_id=str(original.get("command_id") or int(time.time() * 1000)),
            original_source=str(original.get("source") or "unknown"),
        )
        sent = await self._publish(topics.PUMP_CONTROL, command.to_dict())
        if sent:
            logger.info("Forwarded pump command to device: %s (%s)", command.action, command.command_id)
        return sent

    async def forward_pump_status(self, is_active: bool, original: Mapping[str, Any]) -> bool:
        """Send a pump status envelope to the app status topic."""
        command_id = original.get("command_id")
        status = PumpStatusUpdate(
            is_active=is_active,
            timestamp=iso_timestamp(time.time()),
            command_id=str(command_id) if command_id is not None else None,
            original_source=str(original.get("source") or "device"),
        )
        sent = await self._publish(topics.APP_PUMP_STATUS, status.to_dict())
        if sent:
            logger.info("Forwarded pump status to app: %s", status.status)
        return sent

    # ------------------------------------------------------------------
    # Sync and liveness
    # ------------------------------------------------------------------

    async def answer_sync(self, kind: SyncKind) -> bool:
        """Republish the latest stored record of *kind*.

        Returns ``False`` (and publishes nothing) when nothing has been
        stored yet or the store cannot be read.
        """
        if kind is SyncKind.SENSORS:
            path, topic = self._paths.current_sensor, topics.SENSOR_DATA
        else:
            path, topic = self._paths.current_pump, topics.PUMP_STATUS

        try:
            latest = await self._store.get(path)
        except Exception:
            logger.exception("Error reading %s for sync", path)
            return False

        if latest is None:
            logger.info("Sync %s requested but nothing stored yet", kind)
            return False
        return await self._publish(topic, latest)

    async def publish_bridge_status(self, status: str) -> bool:
        """Announce the bridge as ``online`` or ``offline``."""
        return await self._publish(
            topics.BRIDGE_STATUS,
            self.bridge_status(status).to_dict(),
            wait=status == "offline",
        )

    def bridge_status(self, status: str) -> BridgeStatus:
        now = time.time()
        return BridgeStatus(
            bridge_status=status,
            timestamp=now,
            updated_at=iso_timestamp(now),
            client_id=self._client_id,
        )
