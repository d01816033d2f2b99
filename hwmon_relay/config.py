from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import configparser

PARTITION_SOURCES = ("auto", "local", "agent")


@dataclass(frozen=True)
class UpstreamConfig:
    url: str
    username: str | None
    password: str | None
    timeout_s: float


@dataclass(frozen=True)
class PublishConfig:
    interval_s: float


@dataclass(frozen=True)
class ServerConfig:
    host: str
    port: int
    api_key: str | None
    cors_origins: list[str]


@dataclass(frozen=True)
class PartitionConfig:
    source: str


@dataclass(frozen=True)
class MqttConfig:
    enabled: bool
    host: str
    port: int
    base_topic: str
    client_id: str
    username: str | None
    password: str | None
    qos: int
    retain: bool
    keepalive: int
    tls_enabled: bool
    ca_cert: str | None


@dataclass(frozen=True)
class AppConfig:
    upstream: UpstreamConfig
    publish: PublishConfig
    server: ServerConfig
    partitions: PartitionConfig
    mqtt: MqttConfig


def _get_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def _get_list(value: str | None) -> list[str]:
    if value is None:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config(path: str | Path) -> AppConfig:
    parser = configparser.ConfigParser()
    read_files = parser.read(path, encoding="utf-8")
    if not read_files:
        raise FileNotFoundError(f"Config file not found: {path}")

    upstream_section = parser["upstream"]

    upstream = UpstreamConfig(
        url=upstream_section.get("url", "http://localhost:8085/data.json"),
        username=_get_optional(upstream_section.get("username")),
        password=_get_optional(upstream_section.get("password")),
        timeout_s=upstream_section.getfloat("timeout_s", 5.0),
    )

    publish = PublishConfig(
        interval_s=parser.getfloat("publish", "interval_s", fallback=1.0),
    )

    # Use parser.get with fallback to handle missing optional sections
    server = ServerConfig(
        host=parser.get("server", "host", fallback="0.0.0.0"),
        port=parser.getint("server", "port", fallback=5000),
        api_key=_get_optional(parser.get("server", "api_key", fallback=None)),
        cors_origins=_get_list(parser.get("server", "cors_origins", fallback="*")),
    )

    source = parser.get("partitions", "source", fallback="auto").strip().lower()
    if source not in PARTITION_SOURCES:
        raise ValueError(
            f"Invalid partitions.source {source!r}; expected one of {', '.join(PARTITION_SOURCES)}"
        )
    partitions = PartitionConfig(source=source)

    mqtt = MqttConfig(
        enabled=parser.getboolean("mqtt", "enabled", fallback=False),
        host=parser.get("mqtt", "host", fallback="localhost"),
        port=parser.getint("mqtt", "port", fallback=1883),
        base_topic=parser.get("mqtt", "base_topic", fallback="hwmon-relay/snapshot"),
        client_id=parser.get("mqtt", "client_id", fallback="hwmon-relay"),
        username=_get_optional(parser.get("mqtt", "username", fallback=None)),
        password=_get_optional(parser.get("mqtt", "password", fallback=None)),
        qos=parser.getint("mqtt", "qos", fallback=0),
        retain=parser.getboolean("mqtt", "retain", fallback=False),
        keepalive=parser.getint("mqtt", "keepalive", fallback=60),
        tls_enabled=parser.getboolean("mqtt", "tls", fallback=False),
        ca_cert=_get_optional(parser.get("mqtt", "ca_cert", fallback=None)),
    )

    return AppConfig(
        upstream=upstream,
        publish=publish,
        server=server,
        partitions=partitions,
        mqtt=mqtt,
    )
