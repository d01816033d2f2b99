"""Tests for assembling snapshots from one monitor fetch."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from http.client import IncompleteRead
from unittest.mock import patch

from hwmon_relay.builder import SnapshotBuilder, host_os, host_uptime
from hwmon_relay.config import UpstreamConfig
from hwmon_relay.errors import UpstreamShapeInvalid
from hwmon_relay.models import SNAPSHOT_SECTIONS, Partition
from hwmon_relay.schema import validate_snapshot
from hwmon_relay.tree import UNAVAILABLE
from hwmon_relay.upstream import UpstreamClient

from conftest import FakeUpstream, StaticPartitions, group, lhm_payload


def make_builder(upstream, partitions=None):
    return SnapshotBuilder(
        upstream,
        StaticPartitions(partitions),
        uptime_fn=lambda: 1234,
        os_fn=lambda: "windows",
    )


class TestSnapshotBuilder:
    def test_builds_full_snapshot(self):
        partitions = [Partition(name="C:", total="931.51 GB", used="512.00 GB", free="419.51 GB")]
        builder = make_builder(FakeUpstream(lhm_payload()), partitions)

        snapshot = builder.build()

        assert snapshot is not None
        payload = snapshot.to_dict()
        assert list(payload) == list(SNAPSHOT_SECTIONS)
        assert payload["hostname"] == "DESKTOP-TEST"
        assert payload["os"] == "windows"
        assert payload["uptime"] == 1234
        assert payload["ram"]["load"] == "52.3 %"
        assert payload["drives"][0]["used"] == "61.2 %"
        assert payload["partitions"] == [
            {"name": "C:", "total": "931.51 GB", "used": "512.00 GB", "free": "419.51 GB"}
        ]
        assert validate_snapshot(payload) == []

    def test_unrecognised_hardware_still_yields_complete_shape(self):
        raw = {"Children": [group("MYSTERY-BOX", group("Acme Widget"), group("Thing"))]}
        builder = make_builder(FakeUpstream(raw))

        snapshot = builder.build()

        assert snapshot is not None
        payload = snapshot.to_dict()
        for section in ("cpu", "motherboard", "ram", "gpu", "drives", "network"):
            assert section in payload
        assert payload["ram"] == {
            "load": UNAVAILABLE,
            "used": UNAVAILABLE,
            "available": UNAVAILABLE,
            "virtual_load": UNAVAILABLE,
            "virtual_used": UNAVAILABLE,
            "virtual_available": UNAVAILABLE,
        }
        assert payload["network"]["sent"] == UNAVAILABLE
        assert payload["cpu"]["temp"] == []
        assert payload["drives"] == []
        assert validate_snapshot(payload) == []

    def test_empty_children_produces_no_snapshot(self):
        upstream = FakeUpstream({"Children": []})
        builder = make_builder(upstream)

        assert builder.build() is None
        assert upstream.calls == 1

    def test_unreachable_monitor_produces_no_snapshot(self, unavailable_upstream):
        assert make_builder(unavailable_upstream).build() is None

    def test_shape_error_from_source_produces_no_snapshot(self):
        assert make_builder(FakeUpstream(UpstreamShapeInvalid("bad"))).build() is None

    @patch("hwmon_relay.upstream.urlopen")
    def test_truncated_monitor_response_produces_no_snapshot(self, mock_urlopen):
        mock_urlopen.return_value.__enter__.return_value.read.side_effect = IncompleteRead(b"{", 100)
        client = UpstreamClient(
            UpstreamConfig(url="http://pc:8085/data.json", username=None, password=None, timeout_s=5.0)
        )

        assert make_builder(client).build() is None

    def test_blank_root_label_falls_back_to_hostname(self):
        raw = {"Children": [{"Text": "", "Children": []}]}

        with patch("socket.gethostname", return_value="fallback-host"):
            snapshot = make_builder(FakeUpstream(raw)).build()

        assert snapshot is not None
        assert snapshot.hostname == "fallback-host"

    def test_each_build_is_a_new_fetch(self):
        upstream = FakeUpstream(lhm_payload(cpu_temp="45.0 °C"), lhm_payload(cpu_temp="46.0 °C"))
        builder = make_builder(upstream)

        first = builder.build()
        second = builder.build()

        assert upstream.calls == 2
        assert first.cpu.temp[0]["value"] == "45.0 °C"
        assert second.cpu.temp[0]["value"] == "46.0 °C"

    def test_build_async(self):
        builder = make_builder(FakeUpstream(lhm_payload()))

        snapshot = asyncio.run(builder.build_async())

        assert snapshot is not None
        assert snapshot.hostname == "DESKTOP-TEST"


class TestHostHelpers:
    def test_host_uptime_from_boot_time(self):
        with patch("psutil.boot_time", return_value=1000.0), patch(
            "hwmon_relay.builder.datetime"
        ) as mock_datetime:
            mock_datetime.fromtimestamp.side_effect = datetime.fromtimestamp
            mock_datetime.now.return_value = datetime.fromtimestamp(1600.5, tz=timezone.utc)

            assert host_uptime() == 600

    def test_host_os_is_lowercase_platform(self):
        with patch("platform.system", return_value="Windows"):
            assert host_os() == "windows"
