"""Tests for greenhouse_bridge.store - memory store, history ids and the factory."""

from __future__ import annotations

import pytest

from greenhouse_bridge.store import HistoryIdGenerator, MemoryStore, StorePaths, create_store, register_store
from greenhouse_bridge.store.base import Store

NOW = 1_700_000_000.0


# -----------------------------------------------------------------------
# HistoryIdGenerator
# -----------------------------------------------------------------------


class TestHistoryIdGenerator:
    """Time-based ids that never collide."""

    def test_format(self) -> None:
        gen = HistoryIdGenerator()
        assert gen.next_id(2.001234) == "2001_234"

    def test_same_instant_is_bumped(self) -> None:
        gen = HistoryIdGenerator()
        ids = [gen.next_id(NOW) for _ in range(3)]
        assert ids == ["1700000000000_000", "1700000000000_001", "1700000000000_002"]

    def test_clock_going_back(self) -> None:
        gen = HistoryIdGenerator()
        first = gen.next_id(NOW + 1)
        second = gen.next_id(NOW)
        assert second != first
        assert second.startswith("1700000001000_")

    def test_bump_carries_into_milliseconds(self) -> None:
        gen = HistoryIdGenerator()
        assert gen.next_id(2.000999) == "2000_999"
        assert gen.next_id(2.000999) == "2001_000"

    def test_uses_clock(self) -> None:
        gen = HistoryIdGenerator(clock=lambda: 2.5)
        assert gen.next_id() == "2500_000"


# -----------------------------------------------------------------------
# MemoryStore
# -----------------------------------------------------------------------


class TestMemoryStore:
    """Current records and history logs."""

    @pytest.mark.asyncio
    async def test_get_unset_path(self) -> None:
        store = MemoryStore()
        await store.connect()
        assert await store.get("greenhouse_data/current_sensor") is None

    @pytest.mark.asyncio
    async def test_last_write_wins(self) -> None:
        store = MemoryStore()
        await store.set("p", {"v": 1})
        await store.set("p", {"v": 2})
        assert await store.get("p") == {"v": 2}

    @pytest.mark.asyncio
    async def test_records_are_copied(self) -> None:
        store = MemoryStore()
        data = {"nested": {"v": 1}}
        await store.set("p", data)
        data["nested"]["v"] = 99
        fetched = await store.get("p")
        assert fetched == {"nested": {"v": 1}}
        fetched["nested"]["v"] = 42
        assert await store.get("p") == {"nested": {"v": 1}}

    @pytest.mark.asyncio
    async def test_push_stamps_history_keys(self) -> None:
        store = MemoryStore(clock=lambda: NOW)
        entry = await store.push("h", {"v": 1})
        assert entry.id == "1700000000000_000"
        assert entry.path == "h"
        assert len(entry.date_key) == 10
        assert 0 <= entry.hour < 24
        assert 0 <= entry.minute < 60
        flat = entry.flatten()
        assert flat["v"] == 1
        assert flat["id"] == entry.id
        assert flat["recorded_at"] == entry.recorded_at

    @pytest.mark.asyncio
    async def test_history_order_and_limit(self) -> None:
        store = MemoryStore()
        for i in range(5):
            await store.push("h", {"i": i})
        await store.push("other", {"i": -1})

        entries = await store.history("h")
        assert [e.data["i"] for e in entries] == [0, 1, 2, 3, 4]
        assert len({e.id for e in entries}) == 5
        assert [e.data["i"] for e in await store.history("h", limit=2)] == [3, 4]
        assert await store.history("h", limit=0) == []
        assert await store.history("missing") == []

    @pytest.mark.asyncio
    async def test_readable_after_close(self) -> None:
        store = MemoryStore()
        await store.set("p", {"v": 1})
        await store.close()
        assert await store.get("p") == {"v": 1}


class TestStorePaths:
    def test_defaults(self) -> None:
        paths = StorePaths()
        assert paths.current_sensor == "greenhouse_data/current_sensor"
        assert paths.general_messages == "greenhouse_data/general_messages"

    def test_override(self) -> None:
        assert StorePaths(current_pump="x/pump").current_pump == "x/pump"


# -----------------------------------------------------------------------
# Factory
# -----------------------------------------------------------------------


class TestCreateStore:
    def test_default_is_memory(self) -> None:
        assert isinstance(create_store({}), MemoryStore)

    def test_case_insensitive(self) -> None:
        assert isinstance(create_store({"type": " Memory "}), MemoryStore)

    def test_unknown_type(self) -> None:
        with pytest.raises(ValueError, match="Unknown store type"):
            create_store({"type": "redis"})

    def test_register_custom(self) -> None:
        register_store("scratch", "greenhouse_bridge.store.memory", "MemoryStore")
        store = create_store({"type": "scratch"})
        assert isinstance(store, Store)

    def test_database(self, tmp_path) -> None:
        pytest.importorskip("sqlalchemy")
        store = create_store({"type": "database", "connection_string": f"sqlite+aiosqlite:///{tmp_path}/g.db"})
        assert type(store).__name__ == "DatabaseStore"
