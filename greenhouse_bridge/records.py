"""Canonical record builder.

Turns decoded payload dicts into the store schema defined in
:mod:`greenhouse_bridge.models`.  Builders return ``None`` when the payload
holds nothing actionable; the caller logs and drops the message.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any

from greenhouse_bridge.conditions import DEFAULT_THRESHOLDS, ConditionThresholds, classify
from greenhouse_bridge.models import (
    PUMP_SLOT,
    EnvironmentRecord,
    Origin,
    PumpRecord,
    PumpState,
    SensorReading,
    SensorRecord,
    iso_timestamp,
)
from greenhouse_bridge.payload import extract_sensor_value, to_number

__all__ = [
    "build_app_sensor_record",
    "build_device_sensor_record",
    "build_environment_record",
    "build_pump_record",
]

_SENSOR_IDS = ("sensor_1", "sensor_2")
_ENVIRONMENT_FIELDS = ("temperature", "humidity", "soil_moisture", "light_level")


def _reading(
    sensor_id: str,
    value: float | None,
    is_active: bool,
    thresholds: ConditionThresholds,
) -> SensorReading:
    return SensorReading(
        sensor_id=sensor_id,
        value=value if value is not None else 0.0,
        is_active=is_active,
        condition=classify(value, thresholds),
    )


def _assemble(
    readings: list[SensorReading],
    *,
    source: Origin,
    record_type: str,
    thresholds: ConditionThresholds,
    now: float | None,
) -> SensorRecord:
    ts = time.time() if now is None else now
    # Zero-valued slots are placeholders, not measurements
    active = [r.value for r in readings if r.is_active and r.value > 0]
    average = round(sum(active) / len(active), 1) if active else None
    return SensorRecord(
        sensors={f"soil_sensor_{i}": r for i, r in enumerate(readings, start=1)},
        average_value=average,
        overall_condition=classify(average, thresholds) if average is not None else None,
        timestamp=ts,
        updated_at=iso_timestamp(ts),
        source=source,
        record_type=record_type,
    )


def build_device_sensor_record(
    payload: Mapping[str, Any],
    thresholds: ConditionThresholds = DEFAULT_THRESHOLDS,
    now: float | None = None,
) -> SensorRecord | None:
    """Build a device-origin record, or ``None`` when neither sensor reported."""
    values = [extract_sensor_value(payload, sid) for sid in _SENSOR_IDS]
    if all(v is None for v in values):
        return None

    readings = [
        _reading(sid, value, value is not None, thresholds)
        for sid, value in zip(_SENSOR_IDS, values, strict=True)
    ]
    return _assemble(
        readings,
        source=Origin.DEVICE,
        record_type="sensor_reading",
        thresholds=thresholds,
        now=now,
    )


def build_app_sensor_record(
    payload: Mapping[str, Any],
    thresholds: ConditionThresholds = DEFAULT_THRESHOLDS,
    now: float | None = None,
) -> SensorRecord | None:
    """Build a record from data the mobile app published.

    Two formats are understood:

    * ``{"sensors": {"sensor_1": {"value": .., "is_active": ..}, ..}}`` -
      the app's own snapshot; its ``is_active`` flags are honoured.
    * ``{"value": .., "sensor_id": ..}`` (or any payload with a
      ``sensor_type``) - a single reading placed in slot 1.

    Returns ``None`` for anything else.
    """
    sensors = payload.get("sensors")
    # Canonical records echoed back use soil_sensor_* slots and are not app data
    if isinstance(sensors, Mapping) and any(sid in sensors for sid in _SENSOR_IDS):
        readings = []
        for sid in _SENSOR_IDS:
            entry = sensors.get(sid)
            entry = entry if isinstance(entry, Mapping) else {}
            value = extract_sensor_value(payload, sid)
            flag = entry.get("is_active")
            is_active = flag if isinstance(flag, bool) else value is not None
            readings.append(_reading(str(entry.get("sensor_id") or sid), value, is_active, thresholds))
        return _assemble(
            readings,
            source=Origin.MOBILE_APP,
            record_type="app_sensor_update",
            thresholds=thresholds,
            now=now,
        )

    if "value" in payload or "sensor_type" in payload:
        value = to_number(payload.get("value"))
        if value is not None and value < 0:
            value = None
        readings = [
            _reading(str(payload.get("sensor_id") or "mobile_sensor"), value, value is not None, thresholds),
            _reading("sensor_2", None, False, thresholds),
        ]
        return _assemble(
            readings,
            source=Origin.MOBILE_APP,
            record_type="single_sensor_update",
            thresholds=thresholds,
            now=now,
        )

    return None


def build_pump_record(
    is_active: bool,
    source: str,
    command_id: str | None = None,
    now: float | None = None,
) -> PumpRecord:
    ts = time.time() if now is None else now
    updated_at = iso_timestamp(ts)
    return PumpRecord(
        pump={PUMP_SLOT: PumpState(is_active=is_active, last_changed=updated_at)},
        timestamp=ts,
        updated_at=updated_at,
        source=source,
        command_id=command_id,
    )


def build_environment_record(payload: Mapping[str, Any], now: float | None = None) -> EnvironmentRecord:
    """Build an environment snapshot; absent or non-numeric fields stay ``None``."""
    ts = time.time() if now is None else now
    fields = {name: to_number(payload.get(name)) for name in _ENVIRONMENT_FIELDS}
    return EnvironmentRecord(timestamp=ts, updated_at=iso_timestamp(ts), **fields)
