"""Router - classifies each inbound message and runs the matching handler.

Dispatch order over the parsed :class:`~greenhouse_bridge.topics.TopicRoute`:

1. device sensor data
2. app sensor data
3. environment data
4. pump data (either origin)
5. sync requests
6. anything else - stored verbatim in the general message log

Handlers are isolated from each other and from the caller: an exception is
logged and the message is dropped, so one bad message never stops the
bridge.  Store and notification failures inside a handler are caught at
the call site and do not prevent the remaining side effects.
"""

from __future__ import annotations

import collections
import logging
from collections.abc import Mapping
from typing import Any

from greenhouse_bridge.conditions import DEFAULT_THRESHOLDS, ConditionThresholds, check_anomaly
from greenhouse_bridge.control import AutoControlConfig, decide_pump
from greenhouse_bridge.forwarder import Forwarder
from greenhouse_bridge.models import PUMP_SLOT, HistoryEntry, InboundMessage, Origin, SensorRecord, SyncKind
from greenhouse_bridge.notify.base import Notifier
from greenhouse_bridge.notify.simple import LogNotifier
from greenhouse_bridge.payload import decode_payload, resolve_pump_status
from greenhouse_bridge.records import (
    build_app_sensor_record,
    build_device_sensor_record,
    build_environment_record,
    build_pump_record,
)
from greenhouse_bridge.store.base import Store, StorePaths
from greenhouse_bridge.topics import TopicDomain, TopicRoute, classify_topic

__all__ = ["Router"]

logger = logging.getLogger("greenhouse_bridge.router")

ALERT_TITLE = "Soil moisture alert"


class Router:
    """Translate inbound messages into store writes and outbound publishes.

    Parameters:
        store: Persistence backend.
        forwarder: Publisher for translated records.
        notifier: Receives soil moisture alerts (defaults to logging them).
        thresholds: Condition classification boundaries.
        auto_control: Automatic pump control settings.
        paths: Store locations.
    """

    def __init__(
        self,
        store: Store,
        forwarder: Forwarder,
        notifier: Notifier | None = None,
        *,
        thresholds: ConditionThresholds = DEFAULT_THRESHOLDS,
        auto_control: AutoControlConfig | None = None,
        paths: StorePaths | None = None,
    ) -> None:
        self._store = store
        self._forwarder = forwarder
        self._notifier = notifier or LogNotifier()
        self._thresholds = thresholds
        self._auto_control = auto_control or AutoControlConfig()
        self._paths = paths or StorePaths()
        self.stats: collections.Counter[str] = collections.Counter()

    async def route(self, message: InboundMessage) -> TopicRoute:
        """Process one message.  Never raises."""
        route = classify_topic(message.topic)
        self.stats["received"] += 1
        try:
            data = decode_payload(message.payload, message.topic, message.received_at)
            logger.debug("Routing %s message from %s", route.domain, message.topic)
            await self._dispatch(route, data)
        except Exception:
            self.stats["failed"] += 1
            logger.exception("Error handling %s message from %s", route.domain, message.topic)
        else:
            self.stats[route.domain] += 1
        return route

    async def _dispatch(self, route: TopicRoute, data: dict[str, Any]) -> None:
        if route.domain is TopicDomain.SENSORS and not route.is_app:
            await self._handle_device_sensors(data)
        elif route.domain is TopicDomain.SENSORS:
            await self._handle_app_sensors(data)
        elif route.domain is TopicDomain.ENVIRONMENT:
            await self._handle_environment(data)
        elif route.domain is TopicDomain.PUMP:
            await self._handle_pump(route, data)
        elif route.domain is TopicDomain.SYNC:
            await self._handle_sync(route)
        else:
            logger.info("Unhandled topic %s, saving to general messages", data.get("topic"))
            await self._save_history(self._paths.general_messages, data)

    # ------------------------------------------------------------------
    # Store helpers (failures are logged, never raised)
    # ------------------------------------------------------------------

    async def _save_current(self, path: str, data: Mapping[str, Any]) -> bool:
        try:
            await self._store.set(path, data)
        except Exception:
            logger.exception("Error saving %s", path)
            return False
        logger.debug("Saved %s", path)
        return True

    async def _save_history(self, path: str, data: Mapping[str, Any]) -> HistoryEntry | None:
        try:
            entry = await self._store.push(path, data)
        except Exception:
            logger.exception("Error saving history %s", path)
            return None
        logger.debug("History entry %s saved to %s", entry.id, path)
        return entry

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_device_sensors(self, data: dict[str, Any]) -> None:
        record = build_device_sensor_record(data, self._thresholds)
        if record is None:
            logger.warning("No valid sensor values in device data (keys: %s)", ", ".join(sorted(data)))
            return

        logger.info(
            "Device sensors: sensor_1=%s sensor_2=%s",
            _fmt(record, 1),
            _fmt(record, 2),
        )
        payload = record.to_dict()
        await self._save_current(self._paths.current_sensor, payload)
        await self._save_history(self._paths.sensor_history, {**payload, "device_source": Origin.DEVICE.value})
        await self._forwarder.forward_to_app(record)
        await self._alert(record)
        await self._apply_auto_control(record)

    async def _handle_app_sensors(self, data: dict[str, Any]) -> None:
        record = build_app_sensor_record(data, self._thresholds)
        if record is None:
            logger.warning("Unknown app sensor data format (keys: %s)", ", ".join(sorted(data)))
            return

        logger.info("App sensors: sensor_1=%s sensor_2=%s", _fmt(record, 1), _fmt(record, 2))
        payload = record.to_dict()
        await self._save_current(self._paths.current_sensor_app, payload)
        await self._save_history(
            self._paths.sensor_history, {**payload, "device_source": Origin.MOBILE_APP.value}
        )
        await self._forwarder.forward_to_device(record)

    async def _handle_environment(self, data: dict[str, Any]) -> None:
        payload = build_environment_record(data).to_dict()
        await self._save_current(self._paths.current_environment, payload)
        await self._save_history(self._paths.environment_history, payload)
        logger.info("Environment data saved")

    async def _handle_pump(self, route: TopicRoute, data: dict[str, Any]) -> None:
        is_active = resolve_pump_status(data)
        if is_active is None:
            logger.warning("No valid pump status found (keys: %s)", ", ".join(sorted(data)))
            return

        if route.is_app:
            source = Origin.MOBILE_APP.value
        else:
            source = str(data.get("source") or Origin.DEVICE.value)
        command_id = data.get("command_id")
        record = build_pump_record(
            is_active,
            source,
            command_id=str(command_id) if command_id is not None else None,
        )
        logger.info("Pump %s from %s", "ON" if is_active else "OFF", source)

        payload = record.to_dict()
        await self._save_current(self._paths.current_pump, payload)
        await self._save_history(self._paths.pump_history, {**payload, "device_source": source})

        if route.is_control and route.is_app:
            await self._forwarder.forward_pump_command(is_active, data)
        elif route.is_control:
            await self._forwarder.forward_pump_status(is_active, data)

    async def _handle_sync(self, route: TopicRoute) -> None:
        try:
            kind = SyncKind(route.kind)
        except ValueError:
            logger.warning("Unknown sync request '%s'", route.kind)
            return
        await self._forwarder.answer_sync(kind)

    # ------------------------------------------------------------------
    # Derived actions (device updates only)
    # ------------------------------------------------------------------

    async def _alert(self, record: SensorRecord) -> None:
        message = check_anomaly(record.reading(1), record.reading(2), self._thresholds)
        if message is None:
            return
        logger.info("Soil anomaly: %s", message)
        try:
            await self._notifier.send_notification(ALERT_TITLE, message)
        except Exception:
            logger.exception("Error sending notification")

    async def _apply_auto_control(self, record: SensorRecord) -> None:
        if not self._auto_control.enabled:
            return
        decision = decide_pump(record, self._auto_control.on_conflict)
        if decision is None:
            logger.debug("Auto-control: no change")
            return

        try:
            current = await self._store.get(self._paths.current_pump)
        except Exception:
            logger.exception("Error reading %s", self._paths.current_pump)
            current = None
        if current is not None and _pump_is_active(current) is decision:
            logger.debug("Auto-control: pump already %s", "on" if decision else "off")
            return

        logger.info("Auto-control: turning pump %s", "on" if decision else "off")
        await self._forwarder.forward_pump_command(decision, {"source": "auto_control"}, source="auto_control")


def _fmt(record: SensorRecord, index: int) -> str:
    reading = record.reading(index)
    return f"{reading.value:g} ({reading.condition})" if reading.is_active else "N/A"


def _pump_is_active(stored: Mapping[str, Any]) -> bool | None:
    state = stored.get("pump", {}).get(PUMP_SLOT, {})
    value = state.get("is_active") if isinstance(state, Mapping) else None
    return value if isinstance(value, bool) else None
