"""Soil moisture condition classifier.

The bridge works on one canonical scale: raw analog readings of the
resistive soil sensors wired to the ESP32 ADC.  Below ``dry_below`` the
soil is dry, up to and including ``wet_above`` it is normal, above that it
is wet.  The two thresholds are a calibration decision of the deploying
team and are set in the ``thresholds:`` section of the config file.
"""

from __future__ import annotations

import math

from pydantic import BaseModel, model_validator

from greenhouse_bridge.models import Condition, SensorReading

__all__ = ["ANOMALY_SEPARATOR", "DEFAULT_THRESHOLDS", "ConditionThresholds", "check_anomaly", "classify"]

ANOMALY_SEPARATOR = " & "


class ConditionThresholds(BaseModel):
    """Classification boundaries.

    Attributes:
        dry_below: Readings strictly below this are ``dry``.
        wet_above: Readings strictly above this are ``wet``.
        scale: Free-form label of the calibration scale, for logs only.
    """

    model_config = {"frozen": True}

    dry_below: float = 1200.0
    wet_above: float = 1800.0
    scale: str = "analog"

    @model_validator(mode="after")
    def _ordered(self) -> ConditionThresholds:
        if self.dry_below > self.wet_above:
            raise ValueError(f"dry_below ({self.dry_below}) must not exceed wet_above ({self.wet_above})")
        return self


DEFAULT_THRESHOLDS = ConditionThresholds()


def classify(value: float | None, thresholds: ConditionThresholds = DEFAULT_THRESHOLDS) -> Condition:
    """Map a reading to a :class:`Condition`.  ``None`` and NaN are ``unknown``."""
    if value is None or math.isnan(value):
        return Condition.UNKNOWN
    if value < thresholds.dry_below:
        return Condition.DRY
    if value <= thresholds.wet_above:
        return Condition.NORMAL
    return Condition.WET


def _describe(label: str, reading: SensorReading | None, thresholds: ConditionThresholds) -> str | None:
    if reading is None or not reading.is_active:
        return None
    condition = classify(reading.value, thresholds)
    if condition is Condition.DRY:
        return f"{label} is dry ({reading.value:g})"
    if condition is Condition.WET:
        return f"{label} is wet ({reading.value:g})"
    return None


def check_anomaly(
    reading1: SensorReading | None,
    reading2: SensorReading | None,
    thresholds: ConditionThresholds = DEFAULT_THRESHOLDS,
) -> str | None:
    """Build one alert message for the abnormal readings, or ``None``.

    Each dry or wet reading contributes a phrase such as
    ``"Sensor 1 is dry (1000)"``; phrases are joined with ``" & "``.
    Inactive or missing readings never raise an alert.
    """
    phrases = [
        phrase
        for phrase in (
            _describe("Sensor 1", reading1, thresholds),
            _describe("Sensor 2", reading2, thresholds),
        )
        if phrase is not None
    ]
    if not phrases:
        return None
    return ANOMALY_SEPARATOR.join(phrases)
