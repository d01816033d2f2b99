from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
import platform
import socket
from collections.abc import Callable
from typing import Protocol

import psutil

from hwmon_relay.classifier import ComponentClassifier
from hwmon_relay.errors import UpstreamShapeInvalid, UpstreamUnavailable
from hwmon_relay.models import Snapshot, SnapshotDraft
from hwmon_relay.partitions import PartitionProvider
from hwmon_relay.schema import validate_snapshot
from hwmon_relay.tree import SensorNode


class SensorSource(Protocol):
    def fetch(self) -> SensorNode: ...


def host_uptime() -> int:
    boot = datetime.fromtimestamp(psutil.boot_time(), tz=timezone.utc)
    return max(0, int(datetime.now(timezone.utc).timestamp() - boot.timestamp()))


def host_os() -> str:
    return platform.system().lower()


class SnapshotBuilder:
    def __init__(
        self,
        upstream: SensorSource,
        partitions: PartitionProvider,
        classifier: ComponentClassifier | None = None,
        uptime_fn: Callable[[], int] = host_uptime,
        os_fn: Callable[[], str] = host_os,
    ) -> None:
        self.upstream = upstream
        self.partitions = partitions
        self.classifier = classifier or ComponentClassifier()
        self.uptime_fn = uptime_fn
        self.os_fn = os_fn
        self.logger = logging.getLogger(self.__class__.__name__)

    def build(self) -> Snapshot | None:
        """Run one tick: fetch, classify and assemble a snapshot.

        Returns None when the monitor cannot be reached or its payload lacks
        the expected shape; no partially filled snapshot is ever produced.
        """
        try:
            root = self.upstream.fetch()
        except UpstreamUnavailable as exc:
            self.logger.warning("Monitor unavailable, skipping tick: %s", exc)
            return None
        except UpstreamShapeInvalid as exc:
            self.logger.warning("Invalid monitor payload, skipping tick: %s", exc)
            return None

        draft = SnapshotDraft()
        matched = self.classifier.classify(root.children, draft)
        self.logger.debug("Classified %s of %s hardware nodes.", len(matched), len(root.children))

        snapshot = Snapshot.from_draft(
            draft,
            hostname=root.label or socket.gethostname(),
            os=self.os_fn(),
            uptime=self.uptime_fn(),
            partitions=self.partitions.current(),
        )
        schema_errors = validate_snapshot(snapshot.to_dict())
        if schema_errors:
            self.logger.warning("Snapshot schema validation failed with %s errors.", len(schema_errors))
            self.logger.debug("Schema errors: %s", schema_errors)
        return snapshot

    async def build_async(self) -> Snapshot | None:
        return await asyncio.to_thread(self.build)
