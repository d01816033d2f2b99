"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import copy
from typing import Any

import pytest

from hwmon_relay.config import (
    AppConfig,
    MqttConfig,
    PartitionConfig,
    PublishConfig,
    ServerConfig,
    UpstreamConfig,
)
from hwmon_relay.errors import UpstreamUnavailable
from hwmon_relay.upstream import system_root


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "server: mark test as exercising the HTTP/WebSocket surface"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )


def sensor(text: str, sensor_type: str, value: Any) -> dict[str, Any]:
    return {"Text": text, "Type": sensor_type, "Value": value, "Children": []}


def group(text: str, *children: dict[str, Any]) -> dict[str, Any]:
    return {"Text": text, "Children": list(children)}


def lhm_payload(
    cpu_temp: str = "45.0 °C",
    ram_load: str = "52.3 %",
) -> dict[str, Any]:
    """A LibreHardwareMonitor data.json payload for a typical desktop."""
    return {
        "id": 0,
        "Text": "Sensor",
        "Children": [
            group(
                "DESKTOP-TEST",
                group(
                    "Gigabyte B560M DS3H",
                    group(
                        "ITE IT8689E",
                        group("Voltages", sensor("Vcore", "Voltage", "1.200 V")),
                        group("Temperatures", sensor("System #1", "Temperature", "38.0 °C")),
                        group("Fans", sensor("Fan #1", "Fan", "905 RPM")),
                    ),
                ),
                group(
                    "Intel Core i5-11400F",
                    group("Voltages", sensor("CPU Core", "Voltage", "1.150 V")),
                    group(
                        "Temperatures",
                        sensor("CPU Package", "Temperature", cpu_temp),
                        sensor("Core #1", "Temperature", "43.0 °C"),
                    ),
                    group("Load", sensor("CPU Total", "Load", "12.5 %")),
                    group("Clocks", sensor("Core #1", "Clock", "4200.0 MHz")),
                    group("Powers", sensor("CPU Package", "Power", "35.2 W")),
                ),
                group(
                    "Generic Memory",
                    group(
                        "Load",
                        sensor("Memory", "Load", ram_load),
                        sensor("Virtual Memory", "Load", "40.1 %"),
                    ),
                    group(
                        "Data",
                        sensor("Memory Used", "Data", "8.3 GB"),
                        sensor("Memory Available", "Data", "7.6 GB"),
                    ),
                ),
                group(
                    "NVIDIA GeForce RTX 3060",
                    group("Clocks", sensor("GPU Core", "Clock", "1807.5 MHz")),
                    group("Temperatures", sensor("GPU Core", "Temperature", "50.0 °C")),
                    group("Load", sensor("GPU Core", "Load", "20.0 %")),
                    group("Fans", sensor("GPU Fan", "Fan", "1200 RPM")),
                    group(
                        "Data",
                        sensor("GPU Memory Used", "SmallData", "1024.0 MB"),
                        sensor("GPU Memory Total", "SmallData", "12288.0 MB"),
                    ),
                ),
                group(
                    "WD Blue SN580 1TB",
                    group("Temperatures", sensor("Temperature", "Temperature", "40.0 °C")),
                    group(
                        "Load",
                        sensor("Read Activity", "Load", "1.0 %"),
                        sensor("Used Space", "Load", "61.2 %"),
                    ),
                    group(
                        "Throughput",
                        sensor("Read Rate", "Throughput", "1.2 MB/s"),
                        sensor("Write Rate", "Throughput", "300.0 KB/s"),
                    ),
                ),
                group(
                    "Ethernet",
                    group("Load", sensor("Network Utilization", "Load", "0.1 %")),
                    group(
                        "Data",
                        sensor("Data Uploaded", "Data", "1.5 GB"),
                        sensor("Data Downloaded", "Data", "12.0 GB"),
                    ),
                    group(
                        "Throughput",
                        sensor("Upload Speed", "Throughput", "10.0 KB/s"),
                        sensor("Download Speed", "Throughput", "120.0 KB/s"),
                    ),
                ),
            )
        ],
    }


class FakeUpstream:
    """Stands in for UpstreamClient; serves queued payloads and counts fetches."""

    def __init__(self, *payloads: Any) -> None:
        self.payloads = list(payloads)
        self.calls = 0

    def fetch(self):
        self.calls += 1
        payload = self.payloads[0] if len(self.payloads) == 1 else self.payloads.pop(0)
        if isinstance(payload, Exception):
            raise payload
        return system_root(copy.deepcopy(payload))


class StaticPartitions:
    def __init__(self, partitions=None) -> None:
        self.partitions = list(partitions or [])

    def current(self):
        return list(self.partitions)


class RecordingConnection:
    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    async def send(self, message: dict[str, Any]) -> None:
        self.messages.append(message)


@pytest.fixture
def payload():
    return lhm_payload()


@pytest.fixture
def unavailable_upstream():
    return FakeUpstream(UpstreamUnavailable("connection refused"))


def make_config(api_key: str | None = "secret", interval_s: float = 60.0) -> AppConfig:
    return AppConfig(
        upstream=UpstreamConfig(
            url="http://localhost:8085/data.json",
            username=None,
            password=None,
            timeout_s=5.0,
        ),
        publish=PublishConfig(interval_s=interval_s),
        server=ServerConfig(
            host="127.0.0.1",
            port=5000,
            api_key=api_key,
            cors_origins=["http://dashboard.local"],
        ),
        partitions=PartitionConfig(source="agent"),
        mqtt=MqttConfig(
            enabled=False,
            host="localhost",
            port=1883,
            base_topic="hwmon-relay/snapshot",
            client_id="hwmon-relay-test",
            username=None,
            password=None,
            qos=0,
            retain=False,
            keepalive=60,
            tls_enabled=False,
            ca_cert=None,
        ),
    )


@pytest.fixture
def app_config():
    return make_config()
