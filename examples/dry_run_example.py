#!/usr/bin/env python3
"""Bridge dry runs -- 3 cases that push scripted device and app messages
through the bridge without a broker.

Directly runnable (no external services required).

Usage::

    python examples/dry_run_example.py           # Case 1 (default)
    python examples/dry_run_example.py --case 2   # Conflict policy "on"
    python examples/dry_run_example.py --case 3   # SQLite store (needs the database extra)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging

# ---------------------------------------------------------------------------
# Shared helper
# ---------------------------------------------------------------------------


async def _replay(bridge, transport, messages) -> None:
    """Start *bridge*, feed *messages*, drain them and print what was published."""
    await bridge.start()
    for topic, payload in messages:
        transport.inject(topic, payload)
    await transport.close()
    await bridge.process_messages()
    await bridge.stop()

    print("\nPublished:")
    for topic, payload in transport.published:
        print(f"  {topic:<32} {json.dumps(payload)[:90]}")


# ---------------------------------------------------------------------------
# Case 1: Device, app and pump traffic on the default settings
# ---------------------------------------------------------------------------


def run_case_1() -> None:
    """One dry and one wet sensor, an app pump command and a sync request.

    Knobs demonstrated:
      - MemoryTransport    -> loopback instead of a broker
      - default config     -> analog thresholds 1200/1800, on_conflict=hold
      - CallbackNotifier   -> alerts printed instead of pushed
    """
    from greenhouse_bridge import Bridge, topics
    from greenhouse_bridge.notify import CallbackNotifier
    from greenhouse_bridge.transport.memory import MemoryTransport

    print("=== Case 1: Default settings ===")

    transport = MemoryTransport()
    bridge = Bridge(
        transport=transport,
        notifier=CallbackNotifier(lambda title, body: print(f"  ALERT {title}: {body}")),
    )
    messages = [
        (topics.SENSOR_DATA, {"sensors": {"sensor_1": {"value": 1000}, "sensor_2": {"value": 2000}}}),
        (topics.APP_PUMP_CONTROL, {"action": "on", "command_id": "demo_1"}),
        (topics.SYNC_SENSORS, ""),
        ("greenhouse/status/esp32", "online"),
    ]
    asyncio.run(_replay(bridge, transport, messages))


# ---------------------------------------------------------------------------
# Case 2: Conflicting sensors water the bed
# ---------------------------------------------------------------------------


def run_case_2() -> None:
    """Same dry/wet reading, but the conflict policy turns the pump on.

    Knobs demonstrated:
      - auto_control.on_conflict="on" -> publish a pump command on dry+wet
    """
    from greenhouse_bridge import Bridge, BridgeConfig, topics
    from greenhouse_bridge.control import AutoControlConfig
    from greenhouse_bridge.transport.memory import MemoryTransport

    print("=== Case 2: Conflict policy 'on' ===")

    config = BridgeConfig(auto_control=AutoControlConfig(on_conflict="on"))
    transport = MemoryTransport()
    bridge = Bridge(transport=transport, config=config)
    messages = [(topics.SENSOR_DATA, "sensor_1_value=1000, sensor_2_value=2000")]
    asyncio.run(_replay(bridge, transport, messages))


# ---------------------------------------------------------------------------
# Case 3: Persist state in SQLite
# ---------------------------------------------------------------------------


def run_case_3() -> None:
    """Write current state and history to a local SQLite file.

    Knobs demonstrated:
      - create_store({"type": "database", ...}) -> SQLAlchemy async + aiosqlite
    """
    from greenhouse_bridge import Bridge, topics
    from greenhouse_bridge.store import StorePaths, create_store
    from greenhouse_bridge.transport.memory import MemoryTransport

    print("=== Case 3: SQLite store ===")

    store = create_store({"type": "database", "connection_string": "sqlite+aiosqlite:///greenhouse_demo.db"})
    transport = MemoryTransport()
    bridge = Bridge(transport=transport, store=store)
    messages = [(topics.PUMP_STATUS, {"status": "on"}), (topics.SENSOR_DATA, {"sensor_1_value": 1500})]

    async def _main() -> None:
        await _replay(bridge, transport, messages)
        await store.connect()
        history = await store.history(StorePaths().sensor_history)
        print(f"\n{len(history)} sensor history entries in greenhouse_demo.db")
        await store.close()

    asyncio.run(_main())


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

CASES = {1: run_case_1, 2: run_case_2, 3: run_case_3}

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Greenhouse bridge dry runs")
    parser.add_argument("--case", type=int, default=1, choices=sorted(CASES), help="Case number to run")
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING, format="%(name)-30s %(levelname)-7s %(message)s")
    CASES[args.case]()
