"""CLI entry point for the Greenhouse Bridge.

Usage::

    greenhouse-bridge run --config bridge.yaml
    greenhouse-bridge run --broker mqtt://localhost:1883
    greenhouse-bridge list-topics
    greenhouse-bridge classify greenhouse/app/control/pump
    greenhouse-bridge init-config --output bridge.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap

# ---------------------------------------------------------------------------
# Sample YAML config template for init-config
# ---------------------------------------------------------------------------
_SAMPLE_CONFIG = """\
# Greenhouse Bridge configuration
# BROKER_URL, MQTT_USERNAME, MQTT_PASSWORD and MQTT_CLIENTID env vars override the values below.

bridge:
  client_id: greenhouse_bridge        # a millisecond suffix is added at startup
  log_level: INFO                     # DEBUG, INFO, WARNING, ERROR

mqtt:
  broker_url: mqtt://localhost:1883   # mqtts://host:8883 for TLS
  # username: bridge
  # password: secret
  keepalive: 30
  qos: 1
  # tls_insecure: false              # skip certificate verification

# Where current state and history are kept
store:
  type: memory
  # type: database
  # connection_string: sqlite+aiosqlite:///greenhouse.db

# Who gets soil moisture alerts
notifier:
  type: log
  # type: webhook
  # url: https://push.example.com/send
  # tokens: [device-token-1, device-token-2]
  # headers:
  #   Authorization: Bearer my-token

# Raw analog readings of the resistive soil sensors.
# Calibrate for your probes: below dry_below is dry, above wet_above is wet.
thresholds:
  dry_below: 1200
  wet_above: 1800

auto_control:
  enabled: true
  on_conflict: hold                   # one sensor dry, the other wet: hold, on or off

# paths:
#   current_sensor: greenhouse_data/current_sensor
#   sensor_history: greenhouse_data/sensor_history
"""


# ======================================================================
# Main entry point
# ======================================================================


def main(argv: list[str] | None = None) -> None:
    epilog = textwrap.dedent("""\
        examples:
          greenhouse-bridge run --config bridge.yaml
          greenhouse-bridge run --broker mqtt://localhost:1883 --log-level DEBUG
          greenhouse-bridge list-topics
          greenhouse-bridge classify greenhouse/app/control/pump
          greenhouse-bridge init-config --output bridge.yaml
    """)

    parser = argparse.ArgumentParser(
        prog="greenhouse-bridge",
        description="Bridge soil sensor / pump devices, the mobile app and a store over MQTT.",
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", title="commands")

    # -- run ---------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        help="Connect to the broker and start bridging.",
    )
    run_parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to YAML config file (default: built-in defaults).",
    )
    run_parser.add_argument(
        "--broker",
        "-b",
        type=str,
        default=None,
        help="Broker URL, overrides the config file (e.g. mqtt://localhost:1883).",
    )
    run_parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from config, else INFO).",
    )

    # -- list-topics -------------------------------------------------------
    subparsers.add_parser(
        "list-topics",
        help="List subscribed and published topics.",
    )

    # -- classify ----------------------------------------------------------
    classify_parser = subparsers.add_parser(
        "classify",
        help="Show how a topic is routed.",
    )
    classify_parser.add_argument("topic", type=str, help="MQTT topic, e.g. greenhouse/sensors/data.")

    # -- init-config -------------------------------------------------------
    init_parser = subparsers.add_parser(
        "init-config",
        help="Generate a sample YAML configuration file.",
    )
    init_parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Write config to this file instead of stdout.",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return

    # -- Dispatch ----------------------------------------------------------
    if args.command == "run":
        _cmd_run(args)
    elif args.command == "list-topics":
        _cmd_list_topics()
    elif args.command == "classify":
        _cmd_classify(args.topic)
    elif args.command == "init-config":
        _cmd_init_config(args.output)
    else:
        parser.print_help()


# ======================================================================
# Command implementations
# ======================================================================


def _cmd_run(args: argparse.Namespace) -> None:
    """Load the config and run the bridge until interrupted."""
    from greenhouse_bridge.bridge import Bridge
    from greenhouse_bridge.config import BridgeConfig, apply_env_overrides, load_yaml_config

    logging.basicConfig(
        level=getattr(logging, args.log_level or "INFO"),
        format="%(asctime)s %(name)-30s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.config:
        try:
            cfg = load_yaml_config(args.config)
        except FileNotFoundError as exc:
            print(f"Error: {exc}")
            sys.exit(1)
    else:
        import os

        cfg = apply_env_overrides(BridgeConfig(), os.environ)

    if args.broker:
        cfg = cfg.model_copy(update={"mqtt": cfg.mqtt.model_copy(update={"broker_url": args.broker})})
    if args.log_level is None:
        logging.getLogger().setLevel(getattr(logging, cfg.log_level, logging.INFO))

    Bridge.from_config(cfg).run()


# -- list-topics -------------------------------------------------------------


def _cmd_list_topics() -> None:
    from greenhouse_bridge import topics

    outbound = [
        ("device sensors", topics.SENSOR_DATA),
        ("device pump control", topics.PUMP_CONTROL),
        ("device pump status (sync)", topics.PUMP_STATUS),
        ("app sensors", topics.APP_SENSOR_DATA),
        ("app pump status", topics.APP_PUMP_STATUS),
        ("bridge status", topics.BRIDGE_STATUS),
    ]

    print(f"\n{'Subscribed':<36} {'Route'}")
    print("-" * 62)
    for topic in topics.SUBSCRIPTIONS:
        print(f"{topic:<36} {_describe_route(topic)}")
    print(f"\n{'Published':<36} {'Purpose'}")
    print("-" * 62)
    for purpose, topic in outbound:
        print(f"{topic:<36} {purpose}")
    print()


# -- classify ----------------------------------------------------------------


def _cmd_classify(topic: str) -> None:
    print(f"{topic} -> {_describe_route(topic)}")


def _describe_route(topic: str) -> str:
    from greenhouse_bridge.topics import classify_topic

    route = classify_topic(topic)
    kind = f" kind={route.kind}" if route.kind else ""
    return f"domain={route.domain} origin={route.origin}{kind}"


# -- init-config ------------------------------------------------------------


def _cmd_init_config(output_path: str | None) -> None:
    if output_path:
        from pathlib import Path

        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        Path(output_path).write_text(_SAMPLE_CONFIG)
        print(f"Sample config written to {output_path}")
    else:
        print(_SAMPLE_CONFIG)


# ======================================================================
if __name__ == "__main__":
    main()
