"""Tests for greenhouse_bridge.control - automatic pump decisions."""

from __future__ import annotations

import itertools

import pytest
from pydantic import ValidationError

from greenhouse_bridge.control import AutoControlConfig, decide, decide_pump
from greenhouse_bridge.models import Condition
from greenhouse_bridge.records import build_device_sensor_record

D, N, W, U = "dry", "normal", "wet", "unknown"

# Expected decision for every ordered pair of conditions with the default policy
_TABLE = {
    (D, D): True,
    (D, N): True,
    (D, W): None,
    (D, U): True,
    (N, N): False,
    (N, W): False,
    (N, U): False,
    (W, W): False,
    (W, U): False,
    (U, U): None,
}


def _expected(first: str, second: str) -> bool | None:
    return _TABLE.get((first, second), _TABLE.get((second, first)))


class TestDecide:
    """Decision table over all 16 condition pairs."""

    @pytest.mark.parametrize(("first", "second"), list(itertools.product([D, N, W, U], repeat=2)))
    def test_table(self, first: str, second: str) -> None:
        assert decide(Condition(first), Condition(second)) is _expected(first, second)

    @pytest.mark.parametrize(("policy", "expected"), [("hold", None), ("on", True), ("off", False)])
    def test_conflict_policy(self, policy: str, expected: bool | None) -> None:
        assert decide(Condition.DRY, Condition.WET, policy) is expected  # type: ignore[arg-type]
        assert decide(Condition.WET, Condition.DRY, policy) is expected  # type: ignore[arg-type]

    def test_policy_only_affects_conflict(self) -> None:
        assert decide(Condition.WET, Condition.WET, "on") is False
        assert decide(Condition.DRY, Condition.NORMAL, "off") is True


class TestDecidePump:
    def test_from_record(self) -> None:
        dry = build_device_sensor_record({"sensor_1_value": 500, "sensor_2_value": 1500}, now=1.0)
        wet = build_device_sensor_record({"sensor_1_value": 2500}, now=1.0)
        assert dry is not None and wet is not None
        assert decide_pump(dry) is True
        assert decide_pump(wet) is False

    def test_conflicting_record_holds(self) -> None:
        record = build_device_sensor_record({"sensors": {"sensor_1": {"value": 1000}, "sensor_2": {"value": 2000}}})
        assert record is not None
        assert decide_pump(record) is None
        assert decide_pump(record, "on") is True


class TestAutoControlConfig:
    def test_defaults(self) -> None:
        cfg = AutoControlConfig()
        assert cfg.enabled is True
        assert cfg.on_conflict == "hold"

    def test_rejects_unknown_policy(self) -> None:
        with pytest.raises(ValidationError):
            AutoControlConfig(on_conflict="toggle")  # type: ignore[arg-type]
