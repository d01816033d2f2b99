from __future__ import annotations

import argparse
import json
import logging
import sys

from fastapi import FastAPI
import uvicorn

from hwmon_relay.builder import SnapshotBuilder
from hwmon_relay.config import AppConfig, load_config
from hwmon_relay.logging_utils import configure_logging, resolve_log_level, uvicorn_log_level
from hwmon_relay.mqtt_client import MqttPublisher
from hwmon_relay.partitions import PartitionProvider, PartitionStore
from hwmon_relay.server import create_app
from hwmon_relay.upstream import UpstreamClient


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hardware monitor snapshot relay")
    parser.add_argument(
        "--config",
        default="config/example.cfg",
        help="Path to CFG configuration file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging (-v) or trace logging (-vv)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Build a single snapshot, print it as JSON, then exit",
    )
    parser.add_argument(
        "--dump-json",
        help="Write the snapshot JSON to a file (with --once)",
    )
    parser.add_argument("--host", help="Override the configured listen address")
    parser.add_argument("--port", type=int, help="Override the configured listen port")
    return parser


def build_builder(config: AppConfig, store: PartitionStore) -> SnapshotBuilder:
    return SnapshotBuilder(
        UpstreamClient(config.upstream),
        PartitionProvider(store, config.partitions.source),
    )


def build_app(config: AppConfig) -> FastAPI:
    store = PartitionStore()
    mqtt_publisher = MqttPublisher(config.mqtt) if config.mqtt.enabled else None
    return create_app(config, build_builder(config, store), store, mqtt_publisher=mqtt_publisher)


def run_once(config: AppConfig, pretty: bool, dump_path: str | None) -> int:
    logger = logging.getLogger("hwmon_relay")
    snapshot = build_builder(config, PartitionStore()).build()
    if snapshot is None:
        logger.error("No snapshot produced; check the monitor URL and credentials.")
        return 1
    payload = json.dumps(snapshot.to_dict(), indent=2 if pretty else None)
    if dump_path:
        with open(dump_path, "w", encoding="utf-8") as handle:
            handle.write(payload)
    print(payload)
    return 0


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    level = resolve_log_level(args.verbose, args.log_level)
    configure_logging(level)
    logger = logging.getLogger("hwmon_relay")
    config = load_config(args.config)

    if args.once:
        sys.exit(run_once(config, level <= logging.DEBUG, args.dump_json))

    host = args.host or config.server.host
    port = args.port or config.server.port
    logger.info(
        "hwmon-relay listening on %s:%s, polling %s every %ss.",
        host,
        port,
        config.upstream.url,
        config.publish.interval_s,
    )
    uvicorn.run(
        build_app(config),
        host=host,
        port=port,
        log_level=uvicorn_log_level(level),
        log_config=None,
    )


if __name__ == "__main__":
    main()
