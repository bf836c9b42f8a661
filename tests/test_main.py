"""Tests for greenhouse_bridge.__main__ - CLI commands."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from greenhouse_bridge import topics
from greenhouse_bridge.__main__ import _SAMPLE_CONFIG, main


class TestCLI:
    """Argument parsing and command output."""

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        main([])
        assert "greenhouse-bridge" in capsys.readouterr().out

    def test_list_topics(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["list-topics"])
        out = capsys.readouterr().out
        for topic in topics.SUBSCRIPTIONS:
            assert topic in out
        assert topics.BRIDGE_STATUS in out

    def test_classify(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["classify", "greenhouse/app/control/pump"])
        out = capsys.readouterr().out
        assert "domain=pump" in out
        assert "origin=mobile_app" in out
        assert "kind=control" in out

    def test_init_config_stdout(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["init-config"])
        assert "broker_url" in capsys.readouterr().out

    def test_init_config_file(self, tmp_path: Path) -> None:
        out = tmp_path / "conf" / "bridge.yaml"
        main(["init-config", "--output", str(out)])
        assert out.read_text() == _SAMPLE_CONFIG

    def test_sample_config_is_loadable(self, tmp_path: Path) -> None:
        from greenhouse_bridge.config import load_yaml_config

        raw = yaml.safe_load(_SAMPLE_CONFIG)
        assert raw["thresholds"] == {"dry_below": 1200, "wet_above": 1800}
        path = tmp_path / "bridge.yaml"
        path.write_text(_SAMPLE_CONFIG)
        cfg = load_yaml_config(path, environ={})
        assert cfg.auto_control.on_conflict == "hold"


class TestRunCommand:
    def test_missing_config_exits(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["run", "--config", str(tmp_path / "missing.yaml")])
        assert exc_info.value.code == 1

    def test_run_with_broker_override(self, tmp_path: Path) -> None:
        path = tmp_path / "bridge.yaml"
        path.write_text("bridge:\n  client_id: cli_test\n")
        with patch("greenhouse_bridge.bridge.Bridge.from_config") as from_config:
            main(["run", "--config", str(path), "--broker", "mqtt://other:1883"])

        cfg = from_config.call_args.args[0]
        assert cfg.client_id == "cli_test"
        assert cfg.mqtt.broker_url == "mqtt://other:1883"
        from_config.return_value.run.assert_called_once()

    def test_run_without_config_uses_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BROKER_URL", "mqtt://env-broker:1883")
        with patch("greenhouse_bridge.bridge.Bridge.from_config") as from_config:
            main(["run"])
        assert from_config.call_args.args[0].mqtt.broker_url == "mqtt://env-broker:1883"
