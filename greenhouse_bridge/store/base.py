"""Persistence abstraction.

Provides:
- ``Store``              - abstract base class every backend implements.
- ``StorePaths``         - the named paths the bridge reads and writes.
- ``HistoryIdGenerator`` - time-based, collision-free history ids.

Two kinds of path exist.  *Current* paths hold a single record that each
``set()`` overwrites (last write wins).  *History* paths are append-only
logs that ``push()`` extends with a :class:`HistoryEntry`.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from greenhouse_bridge.models import HistoryEntry

__all__ = ["HistoryIdGenerator", "Store", "StorePaths"]


class StorePaths(BaseModel):
    """Locations of the bridge's data inside the store.

    Override any of them under ``paths:`` in the config file.
    """

    current_sensor: str = "greenhouse_data/current_sensor"
    current_sensor_app: str = "greenhouse_data/current_sensor_app"
    current_pump: str = "greenhouse_data/current_pump"
    current_environment: str = "greenhouse_data/current_environment"
    sensor_history: str = "greenhouse_data/sensor_history"
    pump_history: str = "greenhouse_data/pump_history"
    environment_history: str = "greenhouse_data/environment_history"
    general_messages: str = "greenhouse_data/general_messages"


class HistoryIdGenerator:
    """Produce ids of the form ``"<epoch-ms>_<sub-ms>"``.

    The sub-millisecond part is the microsecond remainder of the clock.
    When two entries land on the same microsecond (or the clock steps
    back) the previous id is incremented by one microsecond instead, so ids
    are unique and increasing for the lifetime of the generator.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last: tuple[int, int] = (-1, -1)

    def next_id(self, now: float | None = None) -> str:
        ts = self._clock() if now is None else now
        ms, sub = divmod(round(ts * 1_000_000), 1000)
        if (ms, sub) <= self._last:
            ms, sub = divmod(self._last[0] * 1000 + self._last[1] + 1, 1000)
        self._last = (ms, sub)
        return f"{ms}_{sub:03d}"


class Store(ABC):
    """Abstract base class for all persistence backends.

    Concrete stores implement ``connect``, ``set``, ``get``, ``history``,
    ``_append`` and ``close``.  ``push`` is shared: it stamps the history
    keys and hands the finished entry to ``_append``.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._ids = HistoryIdGenerator(clock)

    @abstractmethod
    async def connect(self) -> None:
        """Open connections / create tables."""

    @abstractmethod
    async def set(self, path: str, data: Mapping[str, Any]) -> None:
        """Overwrite the current record at *path*."""

    @abstractmethod
    async def get(self, path: str) -> dict[str, Any] | None:
        """Return the current record at *path*, or ``None`` if never set."""

    @abstractmethod
    async def history(self, path: str, limit: int | None = None) -> list[HistoryEntry]:
        """Return entries appended to *path*, oldest first (the last *limit* if given)."""

    @abstractmethod
    async def _append(self, entry: HistoryEntry) -> None:
        """Persist a prepared history entry."""

    @abstractmethod
    async def close(self) -> None:
        """Release resources."""

    async def push(self, path: str, data: Mapping[str, Any]) -> HistoryEntry:
        """Append *data* to the history log at *path*."""
        entry = self.make_entry(path, data)
        await self._append(entry)
        return entry

    def make_entry(self, path: str, data: Mapping[str, Any], now: float | None = None) -> HistoryEntry:
        ts = self._clock() if now is None else now
        stamp = datetime.fromtimestamp(ts).astimezone()
        return HistoryEntry(
            id=self._ids.next_id(ts),
            path=path,
            data=dict(data),
            recorded_at=stamp.isoformat(),
            date_key=stamp.strftime("%Y-%m-%d"),
            hour=stamp.hour,
            minute=stamp.minute,
        )
