"""MQTT topic surface of the bridge and structured topic classification.

Every inbound topic is parsed exactly once into a :class:`TopicRoute`
``(domain, origin, kind)`` tuple.  The router then matches on that tuple
instead of probing the raw string, so a segment such as ``app`` or
``sensors`` only counts when it sits in the position that gives it meaning::

    >>> classify_topic("greenhouse/app/control/pump")
    TopicRoute(domain=<TopicDomain.PUMP: 'pump'>, origin=<Origin.MOBILE_APP: 'mobile_app'>, kind='control')
"""

from __future__ import annotations

from enum import StrEnum
from typing import NamedTuple

from greenhouse_bridge.models import Origin

__all__ = [
    "APP_PUMP_CONTROL",
    "APP_PUMP_STATUS",
    "APP_SENSOR_DATA",
    "APP_WILDCARD",
    "BRIDGE_STATUS",
    "ENVIRONMENT_DATA",
    "PUMP_CONTROL",
    "PUMP_STATUS",
    "ROOT",
    "SENSORS_SOIL",
    "SENSORS_WILDCARD",
    "SENSOR_DATA",
    "STATUS_WILDCARD",
    "SUBSCRIPTIONS",
    "SYNC_PUMP",
    "SYNC_SENSORS",
    "TopicDomain",
    "TopicRoute",
    "classify_topic",
]

ROOT = "greenhouse"

# Device (ESP32) topics
SENSOR_DATA = "greenhouse/sensors/data"
PUMP_CONTROL = "greenhouse/control/pump"
PUMP_STATUS = "greenhouse/pump/status"

# Mobile app topics
APP_SENSOR_DATA = "greenhouse/app/sensors/data"
APP_PUMP_CONTROL = "greenhouse/app/control/pump"
APP_PUMP_STATUS = "greenhouse/app/pump/status"

# General topics
SENSORS_SOIL = "greenhouse/sensors/soil"
SENSORS_WILDCARD = "greenhouse/sensors/+"
STATUS_WILDCARD = "greenhouse/status/+"
APP_WILDCARD = "greenhouse/app/+"
ENVIRONMENT_DATA = "greenhouse/environment/data"

# Pull requests for the latest stored state
SYNC_SENSORS = "greenhouse/sync/sensors"
SYNC_PUMP = "greenhouse/sync/pump"

# Liveness of the bridge itself (outbound only)
BRIDGE_STATUS = "greenhouse/bridge/status"

SUBSCRIPTIONS: tuple[str, ...] = (
    SENSOR_DATA,
    PUMP_STATUS,
    PUMP_CONTROL,
    SENSORS_SOIL,
    SENSORS_WILDCARD,
    STATUS_WILDCARD,
    APP_SENSOR_DATA,
    APP_PUMP_CONTROL,
    APP_PUMP_STATUS,
    APP_WILDCARD,
    ENVIRONMENT_DATA,
    SYNC_SENSORS,
    SYNC_PUMP,
)


class TopicDomain(StrEnum):
    """What a topic carries."""

    SENSORS = "sensors"
    PUMP = "pump"
    ENVIRONMENT = "environment"
    SYNC = "sync"
    GENERAL = "general"


class TopicRoute(NamedTuple):
    """Parsed form of an inbound topic."""

    domain: TopicDomain
    origin: Origin
    kind: str = ""

    @property
    def is_control(self) -> bool:
        return self.kind == "control"

    @property
    def is_app(self) -> bool:
        return self.origin is Origin.MOBILE_APP


def classify_topic(topic: str) -> TopicRoute:
    """Parse *topic* into a :class:`TopicRoute`.

    Layout understood::

        greenhouse/[app/]sensors/<kind>
        greenhouse/[app/]pump/<kind>
        greenhouse/[app/]<kind>/pump          (e.g. control/pump)
        greenhouse/[app/]environment/<kind>
        greenhouse/sync/<sensors|pump>

    Anything else, including topics outside the ``greenhouse`` root, is
    ``GENERAL``.
    """
    segments = [s for s in topic.strip("/").split("/") if s]
    if not segments or segments[0] != ROOT:
        return TopicRoute(TopicDomain.GENERAL, Origin.DEVICE, "/".join(segments))

    rest = segments[1:]
    origin = Origin.DEVICE
    if rest and rest[0] == "app":
        origin = Origin.MOBILE_APP
        rest = rest[1:]

    if not rest:
        return TopicRoute(TopicDomain.GENERAL, origin)

    head, tail = rest[0], rest[1:]
    kind = "/".join(tail)

    if head == "sync" and origin is Origin.DEVICE:
        return TopicRoute(TopicDomain.SYNC, origin, kind)
    if head == "sensors":
        return TopicRoute(TopicDomain.SENSORS, origin, kind)
    if head == "pump":
        return TopicRoute(TopicDomain.PUMP, origin, kind)
    if head == "environment":
        return TopicRoute(TopicDomain.ENVIRONMENT, origin, kind)
    # Qualifier-first layout: greenhouse/control/pump
    if tail == ["pump"]:
        return TopicRoute(TopicDomain.PUMP, origin, head)

    return TopicRoute(TopicDomain.GENERAL, origin, "/".join(rest))
