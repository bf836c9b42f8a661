"""Configuration loader for the bridge YAML format.

Parses YAML files with the following top-level sections::

    bridge:        # client id, log level
    mqtt:          # broker connection
    store:         # persistence backend (passed to the store factory)
    notifier:      # alert backend (passed to the notifier factory)
    thresholds:    # soil condition calibration
    auto_control:  # automatic pump control
    paths:         # store path overrides

Example:

.. code-block:: yaml

    bridge:
      client_id: greenhouse_bridge
      log_level: INFO

    mqtt:
      broker_url: mqtts://broker.example.com:8883
      username: bridge

    store:
      type: database
      connection_string: sqlite+aiosqlite:///greenhouse.db

    thresholds:
      dry_below: 1200
      wet_above: 1800

The environment variables ``BROKER_URL``, ``MQTT_USERNAME``,
``MQTT_PASSWORD`` and ``MQTT_CLIENTID`` override the matching keys so
credentials can stay out of the file.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from greenhouse_bridge.conditions import ConditionThresholds
from greenhouse_bridge.control import AutoControlConfig
from greenhouse_bridge.store.base import StorePaths

__all__ = ["BridgeConfig", "MQTTSettings", "apply_env_overrides", "load_yaml_config"]

logger = logging.getLogger("greenhouse_bridge.config")

# Environment variable → (section, key)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "BROKER_URL": ("mqtt", "broker_url"),
    "MQTT_USERNAME": ("mqtt", "username"),
    "MQTT_PASSWORD": ("mqtt", "password"),
    "MQTT_CLIENTID": ("bridge", "client_id"),
}


class MQTTSettings(BaseModel):
    """Broker connection settings (``mqtt:`` section)."""

    broker_url: str = "mqtt://localhost:1883"
    username: str | None = None
    password: str | None = None
    keepalive: int = 30
    qos: int = 1
    tls_insecure: bool = False


class BridgeConfig(BaseModel):
    """Parsed representation of the full YAML configuration.

    Attributes:
        client_id: Base MQTT client id; a millisecond suffix is appended at
            startup so restarts never collide on the broker.
        log_level: Logging level string.
        mqtt: Broker connection settings.
        store: Raw dict passed to :func:`~greenhouse_bridge.store.create_store`.
        notifier: Raw dict passed to
            :func:`~greenhouse_bridge.notify.create_notifier`.
        thresholds: Soil condition calibration.
        auto_control: Automatic pump control settings.
        paths: Store path overrides.
    """

    client_id: str = "greenhouse_bridge"
    log_level: str = "INFO"
    mqtt: MQTTSettings = Field(default_factory=MQTTSettings)
    store: dict[str, Any] = Field(default_factory=lambda: {"type": "memory"})
    notifier: dict[str, Any] = Field(default_factory=lambda: {"type": "log"})
    thresholds: ConditionThresholds = Field(default_factory=ConditionThresholds)
    auto_control: AutoControlConfig = Field(default_factory=AutoControlConfig)
    paths: StorePaths = Field(default_factory=StorePaths)


def load_yaml_config(path: str | Path, environ: Mapping[str, str] | None = None) -> BridgeConfig:
    """Load and validate a YAML configuration file.

    Environment overrides are read from *environ* (default ``os.environ``).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    # --- bridge section ---
    bridge_section = raw.get("bridge") or {}

    config = BridgeConfig(
        client_id=str(bridge_section.get("client_id", "greenhouse_bridge")),
        log_level=str(bridge_section.get("log_level", "INFO")).upper(),
        mqtt=MQTTSettings(**(raw.get("mqtt") or {})),
        store=dict(raw.get("store") or {"type": "memory"}),
        notifier=dict(raw.get("notifier") or {"type": "log"}),
        thresholds=ConditionThresholds(**(raw.get("thresholds") or {})),
        auto_control=AutoControlConfig(**(raw.get("auto_control") or {})),
        paths=StorePaths(**(raw.get("paths") or {})),
    )
    config = apply_env_overrides(config, os.environ if environ is None else environ)

    logger.info(
        "Loaded config: broker=%s store=%s notifier=%s thresholds=%s/%s",
        config.mqtt.broker_url,
        config.store.get("type", "memory"),
        config.notifier.get("type", "log"),
        config.thresholds.dry_below,
        config.thresholds.wet_above,
    )
    return config


def apply_env_overrides(config: BridgeConfig, environ: Mapping[str, str]) -> BridgeConfig:
    """Return a copy of *config* with non-empty environment overrides applied."""
    mqtt_updates: dict[str, Any] = {}
    bridge_updates: dict[str, Any] = {}
    for var, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(var)
        if not value:
            continue
        logger.debug("Using %s from environment", var)
        if section == "mqtt":
            mqtt_updates[key] = value
        else:
            bridge_updates[key] = value

    if mqtt_updates:
        bridge_updates["mqtt"] = config.mqtt.model_copy(update=mqtt_updates)
    return config.model_copy(update=bridge_updates) if bridge_updates else config
