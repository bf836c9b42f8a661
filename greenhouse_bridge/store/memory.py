"""In-process store.

Keeps everything in dicts.  Good for tests, demos and single-run bridges
that do not need state to survive a restart.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from greenhouse_bridge.models import HistoryEntry
from greenhouse_bridge.store.base import Store

__all__ = ["MemoryStore"]


class MemoryStore(Store):
    """Dict-backed :class:`Store`.

    Records are deep-copied on the way in and out, so callers never share
    mutable state with the store.
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._current: dict[str, dict[str, Any]] = {}
        self._history: dict[str, list[HistoryEntry]] = {}

    async def connect(self) -> None:
        """No-op."""

    async def set(self, path: str, data: Mapping[str, Any]) -> None:
        self._current[path] = copy.deepcopy(dict(data))

    async def get(self, path: str) -> dict[str, Any] | None:
        data = self._current.get(path)
        return copy.deepcopy(data) if data is not None else None

    async def history(self, path: str, limit: int | None = None) -> list[HistoryEntry]:
        entries = self._history.get(path, [])
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return [entry.model_copy(deep=True) for entry in entries]

    async def _append(self, entry: HistoryEntry) -> None:
        self._history.setdefault(entry.path, []).append(entry.model_copy(deep=True))

    async def close(self) -> None:
        """No-op - data stays readable after close."""
