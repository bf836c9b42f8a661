"""Greenhouse Bridge - translate MQTT messages between soil sensor / pump
devices, the mobile app and a persistent store.

Quick start::

    from greenhouse_bridge import Bridge, load_yaml_config

    bridge = Bridge.from_config(load_yaml_config("bridge.yaml"))
    bridge.run()
"""

from __future__ import annotations

from greenhouse_bridge.bridge import Bridge
from greenhouse_bridge.conditions import ConditionThresholds, check_anomaly, classify
from greenhouse_bridge.config import BridgeConfig, load_yaml_config
from greenhouse_bridge.control import decide_pump
from greenhouse_bridge.models import Condition, Origin, PumpRecord, SensorRecord
from greenhouse_bridge.payload import extract_pump_status, extract_sensor_value
from greenhouse_bridge.router import Router

__all__ = [
    "Bridge",
    "BridgeConfig",
    "Condition",
    "ConditionThresholds",
    "Origin",
    "PumpRecord",
    "Router",
    "SensorRecord",
    "check_anomaly",
    "classify",
    "decide_pump",
    "extract_pump_status",
    "extract_sensor_value",
    "load_yaml_config",
]

__version__ = "0.1.0"
