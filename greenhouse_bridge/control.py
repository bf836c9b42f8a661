"""Automatic pump control.

Decision table over the two soil sensor conditions:

==================  ===============================
Conditions          Decision
==================  ===============================
any ``dry``         ``True`` (water)
any ``wet``/normal  ``False`` (stop watering)
both ``unknown``    ``None`` (leave the pump alone)
``dry`` + ``wet``   per ``on_conflict`` (default: ``None``)
==================  ===============================

A single normal reading is enough to keep the pump off even when the other
sensor is unknown.  When one sensor reads dry and the other wet the sensors
disagree about the same bed; the default ``hold`` policy leaves the pump as
it is and lets the anomaly alert bring a human in.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from greenhouse_bridge.models import Condition, SensorRecord

__all__ = ["AutoControlConfig", "ConflictPolicy", "decide", "decide_pump"]

ConflictPolicy = Literal["hold", "on", "off"]

_CONFLICT_DECISIONS: dict[str, bool | None] = {"hold": None, "on": True, "off": False}


class AutoControlConfig(BaseModel):
    """Settings of the ``auto_control:`` config section.

    Attributes:
        enabled: Publish pump commands derived from device sensor updates.
        on_conflict: Decision when one sensor is dry and the other wet.
    """

    enabled: bool = True
    on_conflict: ConflictPolicy = "hold"


def decide(first: Condition, second: Condition, on_conflict: ConflictPolicy = "hold") -> bool | None:
    """Apply the decision table to a pair of conditions."""
    pair = {first, second}
    if pair == {Condition.DRY, Condition.WET}:
        return _CONFLICT_DECISIONS[on_conflict]
    if Condition.DRY in pair:
        return True
    if Condition.WET in pair or Condition.NORMAL in pair:
        return False
    return None


def decide_pump(record: SensorRecord, on_conflict: ConflictPolicy = "hold") -> bool | None:
    """Return the pump state *record* calls for, or ``None`` for no change."""
    return decide(record.reading(1).condition, record.reading(2).condition, on_conflict)
