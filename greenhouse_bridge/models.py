"""Canonical record types exchanged between the router, the store and the
transport.

Every device or app payload, whatever shape it arrived in, is normalised
into one of these models before it is persisted or forwarded.
"""

from __future__ import annotations

import time
from datetime import datetime
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, Field, computed_field, model_validator

__all__ = [
    "BridgeStatus",
    "Condition",
    "EnvironmentRecord",
    "HistoryEntry",
    "InboundMessage",
    "PUMP_SLOT",
    "Origin",
    "PumpCommand",
    "PumpRecord",
    "PumpState",
    "PumpStatusUpdate",
    "SENSOR_SLOTS",
    "SensorReading",
    "SensorRecord",
    "SyncKind",
    "iso_timestamp",
]

SENSOR_SLOTS = ("soil_sensor_1", "soil_sensor_2")
PUMP_SLOT = "water_pump"


class Condition(StrEnum):
    """Categorical soil moisture condition."""

    DRY = "dry"
    NORMAL = "normal"
    WET = "wet"
    UNKNOWN = "unknown"


class Origin(StrEnum):
    """Which party produced a message."""

    DEVICE = "device"
    MOBILE_APP = "mobile_app"


class SyncKind(StrEnum):
    SENSORS = "sensors"
    PUMP = "pump"


def iso_timestamp(ts: float) -> str:
    """Render an epoch timestamp as a local ISO-8601 string."""
    return datetime.fromtimestamp(ts).astimezone().isoformat()


class _Record(BaseModel):
    """Shared serialisation helpers."""

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return a plain ``dict`` representation (JSON-safe types)."""
        return self.model_dump(mode="json")

    def to_json(self) -> str:
        """Return a compact JSON string."""
        return self.model_dump_json()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Construct the record from a plain dict."""
        return cls.model_validate(data)


class InboundMessage(BaseModel):
    """One delivery from the transport, before any decoding.

    Attributes:
        topic: Topic the message was published on.
        payload: Raw payload bytes.
        received_at: Unix epoch seconds when the bridge received it.
    """

    topic: str
    payload: bytes
    received_at: float = Field(default_factory=time.time)


class SensorReading(_Record):
    """A single soil sensor slot inside a :class:`SensorRecord`.

    ``value`` is ``0.0`` and ``is_active`` is ``False`` when the payload
    carried no usable reading for the sensor.
    """

    sensor_id: str
    value: float = 0.0
    is_active: bool = False
    condition: Condition = Condition.UNKNOWN


class SensorRecord(_Record):
    """Normalised soil sensor snapshot.

    Attributes:
        sensors: Always the two slots ``soil_sensor_1`` and ``soil_sensor_2``.
        average_value: Mean of the active readings, one decimal place.
        overall_condition: Condition of ``average_value``.
        timestamp: Unix epoch seconds when the record was built.
        updated_at: ISO-8601 form of ``timestamp``.
        source: Origin of the reading.
        record_type: ``"sensor_reading"`` for device data,
            ``"app_sensor_update"`` / ``"single_sensor_update"`` for the app.
    """

    sensors: dict[str, SensorReading]
    average_value: float | None = None
    overall_condition: Condition | None = None
    timestamp: float
    updated_at: str
    source: Origin
    record_type: str

    @model_validator(mode="after")
    def _check_invariants(self) -> SensorRecord:
        if set(self.sensors) != set(SENSOR_SLOTS):
            raise ValueError(f"sensors must hold exactly {SENSOR_SLOTS}, got {sorted(self.sensors)}")
        has_average = self.average_value is not None
        if has_average != (self.overall_condition is not None):
            raise ValueError("average_value and overall_condition must be set together")
        if has_average != bool(self.active_readings()):
            raise ValueError("average_value requires at least one active reading")
        return self

    def active_readings(self) -> list[SensorReading]:
        """Readings that take part in the average (active and above zero)."""
        return [r for r in self.sensors.values() if r.is_active and r.value > 0]

    def reading(self, index: int) -> SensorReading:
        """Return slot ``soil_sensor_<index>``."""
        return self.sensors[f"soil_sensor_{index}"]


class PumpState(_Record):
    is_active: bool
    last_changed: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> str:
        return "on" if self.is_active else "off"


class PumpRecord(_Record):
    """Normalised water pump state.

    ``pump`` holds a single ``water_pump`` slot whose ``status`` is derived
    from ``is_active``, so the two can never disagree.
    """

    pump: dict[str, PumpState]
    timestamp: float
    updated_at: str
    source: str
    record_type: str = "pump_status_update"
    command_id: str | None = None

    @property
    def is_active(self) -> bool:
        return self.pump[PUMP_SLOT].is_active


class EnvironmentRecord(_Record):
    """Ambient readings reported by the mobile app."""

    temperature: float | None = None
    humidity: float | None = None
    soil_moisture: float | None = None
    light_level: float | None = None
    timestamp: float
    updated_at: str
    source: Origin = Origin.MOBILE_APP
    record_type: str = "environment_reading"


class PumpCommand(_Record):
    """Command envelope published on the device pump-control topic."""

    device: str = PUMP_SLOT
    action: str
    timestamp: str
    source: str = "bridge_forward"
    command_id: str
    original_source: str = "unknown"


class PumpStatusUpdate(_Record):
    """Status envelope published on the app pump-status topic."""

    device: str = PUMP_SLOT
    is_active: bool
    timestamp: str
    source: str = "bridge_forward"
    command_id: str | None = None
    original_source: str = "device"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> str:
        return "on" if self.is_active else "off"


class BridgeStatus(_Record):
    """Liveness announcement of the bridge process."""

    bridge_status: str
    timestamp: float
    updated_at: str
    client_id: str


class HistoryEntry(BaseModel):
    """Append-only history item: the stored record plus time keys.

    Attributes:
        id: ``"<epoch-ms>_<sub-ms>"``, unique and increasing per process.
        path: History path the entry was appended to.
        data: The stored record dict.
        recorded_at: ISO-8601 timestamp of the append.
        date_key: ``YYYY-MM-DD`` of the append.
        hour / minute: Local wall-clock time of the append.
    """

    id: str
    path: str
    data: dict[str, Any]
    recorded_at: str
    date_key: str
    hour: int
    minute: int

    def flatten(self) -> dict[str, Any]:
        """Return the record dict merged with the history keys."""
        return {
            **self.data,
            "id": self.id,
            "recorded_at": self.recorded_at,
            "date_key": self.date_key,
            "hour": self.hour,
            "minute": self.minute,
        }
