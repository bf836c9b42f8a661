"""Tests for greenhouse_bridge.transport - loopback transport and MQTT (mocked paho)."""

from __future__ import annotations

import asyncio
import json
import sys
from types import ModuleType
from unittest.mock import MagicMock, patch

import pytest

from greenhouse_bridge.errors import TransportError
from greenhouse_bridge.transport.base import ConnectionState, encode_payload
from greenhouse_bridge.transport.memory import MemoryTransport

# -----------------------------------------------------------------------
# Mock setup
# -----------------------------------------------------------------------


def _make_mock_paho():
    """Create mock paho.mqtt.client module plus the client instance it hands out."""
    paho = ModuleType("paho")
    paho_mqtt = ModuleType("paho.mqtt")
    client_mod = ModuleType("paho.mqtt.client")
    paho.mqtt = paho_mqtt  # type: ignore[attr-defined]
    paho_mqtt.client = client_mod  # type: ignore[attr-defined]

    mock_client = MagicMock()
    mock_client.connect = MagicMock(return_value=0)
    mock_client.subscribe = MagicMock(return_value=(0, 1))
    info = MagicMock(rc=0, mid=7)
    mock_client.publish = MagicMock(return_value=info)

    client_mod.Client = MagicMock(return_value=mock_client)
    client_mod.CallbackAPIVersion = MagicMock()
    client_mod.MQTTv311 = 4
    client_mod.MQTT_ERR_SUCCESS = 0
    client_mod.error_string = MagicMock(side_effect=lambda rc: f"error {rc}")

    modules = {"paho": paho, "paho.mqtt": paho_mqtt, "paho.mqtt.client": client_mod}
    return modules, client_mod, mock_client


def _import_mqtt_module(modules):
    with patch.dict(sys.modules, modules):
        if "greenhouse_bridge.transport.mqtt" in sys.modules:
            del sys.modules["greenhouse_bridge.transport.mqtt"]
        import greenhouse_bridge.transport.mqtt as mqtt_module

        return mqtt_module


def _accept_on_loop_start(transport, mock_client) -> None:
    """Make ``loop_start`` answer with a successful CONNACK."""
    mock_client.loop_start.side_effect = lambda: transport._on_connect(
        mock_client, None, MagicMock(), MagicMock(is_failure=False)
    )


# -----------------------------------------------------------------------
# encode_payload / MemoryTransport
# -----------------------------------------------------------------------


class TestEncodePayload:
    def test_mapping_is_compact_json(self) -> None:
        assert encode_payload({"a": 1, "b": [1, 2]}) == b'{"a":1,"b":[1,2]}'

    def test_text_and_bytes(self) -> None:
        assert encode_payload("on") == b"on"
        assert encode_payload(b"\x00") == b"\x00"


class TestMemoryTransport:
    """Loopback transport used by the bridge tests."""

    @pytest.mark.asyncio
    async def test_state_and_will(self) -> None:
        transport = MemoryTransport()
        assert transport.state is ConnectionState.DISCONNECTED
        await transport.connect(will=("greenhouse/bridge/status", {"bridge_status": "offline"}))
        assert transport.is_connected
        assert transport.will == ("greenhouse/bridge/status", {"bridge_status": "offline"})

    @pytest.mark.asyncio
    async def test_messages_in_order_until_close(self) -> None:
        transport = MemoryTransport()
        await transport.connect()
        transport.inject("a", {"n": 1})
        transport.inject("b", "text")
        await transport.close()

        received = [message async for message in transport.messages()]
        assert [m.topic for m in received] == ["a", "b"]
        assert json.loads(received[0].payload) == {"n": 1}
        assert received[1].payload == b"text"

    @pytest.mark.asyncio
    async def test_publish_records(self) -> None:
        transport = MemoryTransport()
        await transport.publish("t", {"x": 1})
        await transport.publish("t", "raw")
        assert transport.published_on("t") == [{"x": 1}, b"raw"]

    @pytest.mark.asyncio
    async def test_fail_publish(self) -> None:
        transport = MemoryTransport(fail_publish=True)
        with pytest.raises(TransportError):
            await transport.publish("t", {})


# -----------------------------------------------------------------------
# MQTTTransport
# -----------------------------------------------------------------------


class TestParseBrokerUrl:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("mqtt://localhost:1883", ("localhost", 1883, False)),
            ("mqtt://broker", ("broker", 1883, False)),
            ("mqtts://broker.example.com", ("broker.example.com", 8883, True)),
            ("ssl://10.0.0.2:9000", ("10.0.0.2", 9000, True)),
            ("broker.local:1884", ("broker.local", 1884, False)),
        ],
    )
    def test_valid(self, url: str, expected: tuple) -> None:
        modules, _, _ = _make_mock_paho()
        mqtt_module = _import_mqtt_module(modules)
        assert mqtt_module.parse_broker_url(url) == expected

    @pytest.mark.parametrize("url", ["http://broker", "mqtt://"])
    def test_invalid(self, url: str) -> None:
        modules, _, _ = _make_mock_paho()
        mqtt_module = _import_mqtt_module(modules)
        with pytest.raises(ValueError):
            mqtt_module.parse_broker_url(url)


class TestMQTTTransport:
    """MQTTTransport with mocked paho."""

    @pytest.mark.asyncio
    async def test_connect_subscribes_and_sets_will(self) -> None:
        modules, client_mod, mock_client = _make_mock_paho()
        mqtt_module = _import_mqtt_module(modules)

        transport = mqtt_module.MQTTTransport(
            broker_url="mqtt://broker:1883", client_id="bridge_1", username="u", password="p"
        )
        _accept_on_loop_start(transport, mock_client)
        await transport.subscribe(["greenhouse/sensors/data", "greenhouse/sync/pump"])
        await transport.connect(will=("greenhouse/bridge/status", {"bridge_status": "offline"}))
        await asyncio.sleep(0)

        assert transport.state is ConnectionState.CONNECTED
        assert client_mod.Client.call_args.kwargs["client_id"] == "bridge_1"
        mock_client.username_pw_set.assert_called_once_with("u", "p")
        mock_client.connect.assert_called_once_with("broker", 1883, 30)
        will_args = mock_client.will_set.call_args
        assert will_args.args[0] == "greenhouse/bridge/status"
        assert json.loads(will_args.args[1]) == {"bridge_status": "offline"}
        subscribed = [c.args[0] for c in mock_client.subscribe.call_args_list]
        assert subscribed == ["greenhouse/sensors/data", "greenhouse/sync/pump"]
        mock_client.tls_set.assert_not_called()

    @pytest.mark.asyncio
    async def test_tls(self) -> None:
        modules, _, mock_client = _make_mock_paho()
        mqtt_module = _import_mqtt_module(modules)

        transport = mqtt_module.MQTTTransport(broker_url="mqtts://broker", tls_insecure=True)
        _accept_on_loop_start(transport, mock_client)
        await transport.connect()
        mock_client.tls_set.assert_called_once()
        mock_client.tls_insecure_set.assert_called_once_with(True)
        mock_client.connect.assert_called_once_with("broker", 8883, 30)

    @pytest.mark.asyncio
    async def test_unreachable_broker(self) -> None:
        modules, _, mock_client = _make_mock_paho()
        mqtt_module = _import_mqtt_module(modules)
        mock_client.connect.side_effect = ConnectionRefusedError("refused")

        transport = mqtt_module.MQTTTransport(broker_url="mqtt://broker")
        with pytest.raises(TransportError, match="Cannot reach broker"):
            await transport.connect()
        assert transport.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_no_connack(self) -> None:
        modules, _, _ = _make_mock_paho()
        mqtt_module = _import_mqtt_module(modules)

        transport = mqtt_module.MQTTTransport(broker_url="mqtt://broker", connect_timeout_s=0.05)
        with pytest.raises(TransportError, match="No CONNACK"):
            await transport.connect()

    @pytest.mark.asyncio
    async def test_publish(self) -> None:
        modules, _, mock_client = _make_mock_paho()
        mqtt_module = _import_mqtt_module(modules)

        transport = mqtt_module.MQTTTransport(broker_url="mqtt://broker", qos=1)
        _accept_on_loop_start(transport, mock_client)
        await transport.connect()
        await transport.publish("greenhouse/control/pump", {"action": "on"})
        mock_client.publish.assert_called_once_with("greenhouse/control/pump", b'{"action":"on"}', qos=1)

    @pytest.mark.asyncio
    async def test_publish_wait(self) -> None:
        modules, _, mock_client = _make_mock_paho()
        mqtt_module = _import_mqtt_module(modules)

        transport = mqtt_module.MQTTTransport(broker_url="mqtt://broker")
        _accept_on_loop_start(transport, mock_client)
        await transport.connect()
        await transport.publish("greenhouse/bridge/status", {"bridge_status": "offline"}, wait=True)
        mock_client.publish.return_value.wait_for_publish.assert_called_once()

    @pytest.mark.asyncio
    async def test_publish_error(self) -> None:
        modules, _, mock_client = _make_mock_paho()
        mqtt_module = _import_mqtt_module(modules)
        mock_client.publish.return_value = MagicMock(rc=4, mid=0)

        transport = mqtt_module.MQTTTransport(broker_url="mqtt://broker")
        _accept_on_loop_start(transport, mock_client)
        await transport.connect()
        with pytest.raises(TransportError, match="Publish to t failed"):
            await transport.publish("t", {})

    @pytest.mark.asyncio
    async def test_publish_before_connect(self) -> None:
        modules, _, _ = _make_mock_paho()
        mqtt_module = _import_mqtt_module(modules)

        transport = mqtt_module.MQTTTransport(broker_url="mqtt://broker")
        with pytest.raises(TransportError, match="not connected"):
            await transport.publish("t", {})

    @pytest.mark.asyncio
    async def test_inbound_messages_and_close(self) -> None:
        modules, _, mock_client = _make_mock_paho()
        mqtt_module = _import_mqtt_module(modules)

        transport = mqtt_module.MQTTTransport(broker_url="mqtt://broker")
        _accept_on_loop_start(transport, mock_client)
        await transport.connect()

        transport._on_message(mock_client, None, MagicMock(topic="greenhouse/sensors/data", payload=b"{}"))
        transport._on_message(mock_client, None, MagicMock(topic="greenhouse/sync/pump", payload=b""))
        await asyncio.sleep(0)
        await transport.close()

        received = [m async for m in transport.messages()]
        assert [m.topic for m in received] == ["greenhouse/sensors/data", "greenhouse/sync/pump"]
        mock_client.disconnect.assert_called_once()
        mock_client.loop_stop.assert_called_once()
        assert transport.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_disconnect_callback(self) -> None:
        modules, _, mock_client = _make_mock_paho()
        mqtt_module = _import_mqtt_module(modules)

        transport = mqtt_module.MQTTTransport(broker_url="mqtt://broker")
        _accept_on_loop_start(transport, mock_client)
        await transport.connect()
        transport._on_disconnect(mock_client, None, MagicMock(), MagicMock())
        await asyncio.sleep(0)
        assert transport.state is ConnectionState.DISCONNECTED
