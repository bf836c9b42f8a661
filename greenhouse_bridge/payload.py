"""Payload decoding and field extraction.

Devices and the mobile app publish many payload shapes for the same
information.  The functions here turn any of them into typed values:

* :func:`decode_payload` - wire bytes to a ``dict`` (JSON or free text).
* :func:`extract_sensor_value` - one soil sensor reading.
* :func:`extract_pump_status` / :func:`resolve_pump_status` - pump on/off.

None of the extractors mutate their input.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from typing import Any

from greenhouse_bridge.models import iso_timestamp

__all__ = [
    "decode_payload",
    "extract_pump_status",
    "extract_sensor_value",
    "parse_simple_format",
    "resolve_pump_status",
    "to_number",
]

logger = logging.getLogger("greenhouse_bridge.payload")

_SENSOR_KEY_TEMPLATES = (
    "{sid}_value",
    "{sid}_humidity",
    "{sid}_moisture",
    "soil_humidity_{sid}",
    "soil_moisture_{sid}",
    "humidity_{sid}",
    "value_{sid}",
)
_GENERIC_SENSOR_KEYS = ("soil_humidity", "soil_moisture", "humidity", "value")

# Legacy single-sensor firmware reports a percentage under the generic keys.
_PERCENT_MAX = 100.0

_PUMP_BOOL_KEYS = ("active", "is_active", "isActive", "pump_active")
_PUMP_STRING_KEYS = ("status", "state", "pump_status", "pump_state", "action", "command")
_PUMP_ON = frozenset({"on", "true", "active", "1", "start", "activate"})
_PUMP_OFF = frozenset({"off", "false", "inactive", "0", "stop", "deactivate"})
_COMMAND_ON = frozenset({"on", "start", "activate"})


# ----------------------------------------------------------------------
# Wire format
# ----------------------------------------------------------------------


def decode_payload(payload: bytes, topic: str, received_at: float) -> dict[str, Any]:
    """Decode raw message bytes into a mutable ``dict``.

    JSON objects are used as-is.  Anything else becomes a raw-text record
    (never discarded); when the text looks like ``key=value`` or
    ``key:value`` pairs they are attached as ``parsed_attempt`` and also
    merged into the top level so the extractors can find them.

    Every result is stamped with ``topic``, ``received_at`` (ISO-8601) and
    ``server_timestamp`` (epoch milliseconds).
    """
    text = payload.decode("utf-8", errors="replace")

    data: Any
    try:
        data = json.loads(text)
    except ValueError:
        data = None

    if not isinstance(data, dict):
        logger.debug("Non-JSON payload on %s, keeping as raw text", topic)
        data = _raw_text_record(text)

    data["topic"] = topic
    data["received_at"] = iso_timestamp(received_at)
    data["server_timestamp"] = int(received_at * 1000)
    return data


def _raw_text_record(text: str) -> dict[str, Any]:
    record: dict[str, Any] = {"raw_message": text, "message_type": "text"}
    if "=" in text or ":" in text:
        parsed = parse_simple_format(text)
        if parsed:
            record["parsed_attempt"] = parsed
            for key, value in parsed.items():
                record.setdefault(key, value)
    return record


def parse_simple_format(message: str) -> dict[str, Any]:
    """Split ``"a=1, b=true"`` or ``"a: 1, b: on"`` into a typed ``dict``.

    ``=`` takes precedence over ``:`` as the pair separator.  Segments that
    do not split into exactly one key and one value are skipped.
    """
    if "=" in message:
        separator, strip_quotes = "=", False
    elif ":" in message:
        separator, strip_quotes = ":", True
    else:
        return {}

    result: dict[str, Any] = {}
    for segment in message.split(","):
        parts = segment.strip().split(separator)
        if len(parts) != 2:
            continue
        key, value = parts[0].strip(), parts[1].strip()
        if strip_quotes:
            key, value = key.replace('"', ""), value.replace('"', "")
        if key:
            result[key] = _coerce(value)
    return result


def _coerce(value: str) -> Any:
    try:
        return int(value)
    except ValueError:
        pass
    try:
        number = float(value)
    except ValueError:
        number = None
    if number is not None and math.isfinite(number):
        return number
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


# ----------------------------------------------------------------------
# Sensor values
# ----------------------------------------------------------------------


def to_number(value: Any) -> float | None:
    """Return *value* as a finite float, or ``None``.  Booleans are not numbers."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _first_valid(
    payload: Mapping[str, Any],
    keys: tuple[str, ...] | list[str],
    upper: float | None = None,
) -> float | None:
    for key in keys:
        if key not in payload:
            continue
        number = to_number(payload[key])
        if number is None or number < 0:
            continue
        if upper is not None and number > upper:
            continue
        return number
    return None


def extract_sensor_value(payload: Mapping[str, Any], sensor_id: str) -> float | None:
    """Find the reading of *sensor_id* (e.g. ``"sensor_1"``) in *payload*.

    Search order, first non-negative number wins:

    1. ``payload["sensors"][sensor_id]["value"]``
    2. flat keys such as ``sensor_1_value`` or ``soil_moisture_sensor_1``
    3. generic keys (``soil_humidity``, ``value``, ...) when
       ``payload["sensor_id"] == sensor_id``
    4. for ``sensor_1`` only, the generic keys again, limited to 0-100
    """
    sensors = payload.get("sensors")
    if isinstance(sensors, Mapping):
        entry = sensors.get(sensor_id)
        if isinstance(entry, Mapping) and "value" in entry:
            number = to_number(entry["value"])
            if number is not None and number >= 0:
                return number

    keys = [template.format(sid=sensor_id) for template in _SENSOR_KEY_TEMPLATES]
    if payload.get("sensor_id") == sensor_id:
        keys.extend(_GENERIC_SENSOR_KEYS)
    number = _first_valid(payload, keys)
    if number is not None:
        return number

    if sensor_id == "sensor_1":
        number = _first_valid(payload, _GENERIC_SENSOR_KEYS, upper=_PERCENT_MAX)
        if number is not None:
            return number

    logger.debug("No valid value found for %s", sensor_id)
    return None


# ----------------------------------------------------------------------
# Pump status
# ----------------------------------------------------------------------


def extract_pump_status(payload: Mapping[str, Any]) -> bool | None:
    """Return the pump state carried by *payload*, or ``None``.

    Boolean fields (``active``, ``is_active``, ``isActive``,
    ``pump_active``) are trusted directly.  Otherwise the string fields
    ``status``, ``state``, ``pump_status``, ``pump_state``, ``action`` and
    ``command`` are checked in that order; a field whose value is outside
    the on/off vocabulary is skipped.
    """
    for key in _PUMP_BOOL_KEYS:
        value = payload.get(key)
        if isinstance(value, bool):
            return value

    for key in _PUMP_STRING_KEYS:
        value = payload.get(key)
        if value is None or isinstance(value, (Mapping, list)):
            continue
        text = str(value).strip().casefold()
        if text in _PUMP_ON:
            return True
        if text in _PUMP_OFF:
            return False
    return None


def resolve_pump_status(payload: Mapping[str, Any]) -> bool | None:
    """:func:`extract_pump_status` plus the command fallback.

    When no field gives a clear answer but an ``action`` or ``command`` is
    present, ``on``/``start``/``activate`` mean on and any other command
    means off.
    """
    status = extract_pump_status(payload)
    if status is not None:
        return status

    for key in ("action", "command"):
        value = payload.get(key)
        if value not in (None, ""):
            command = str(value).strip().casefold()
            logger.debug("Treating %s %r as a pump command", key, command)
            return command in _COMMAND_ON
    return None
