from __future__ import annotations

import logging
from collections.abc import Iterable

import psutil

from hwmon_relay.errors import PartitionSourceUnavailable
from hwmon_relay.models import Partition

GIB = 1024 ** 3

logger = logging.getLogger(__name__)


class PartitionStore:
    """Last partition list pushed by the companion agent.

    Writers replace the whole value with a single reference assignment, so a
    reader always sees one complete list. Concurrent pushes are
    last-write-wins.
    """

    def __init__(self) -> None:
        self._partitions: tuple[Partition, ...] | None = None

    def get(self) -> tuple[Partition, ...] | None:
        return self._partitions

    def set(self, partitions: Iterable[Partition]) -> None:
        self._partitions = tuple(partitions)

    @property
    def has_value(self) -> bool:
        return self._partitions is not None


def _format_gb(value: float) -> str:
    return f"{value / GIB:.2f} GB"


def read_local_partitions() -> list[Partition]:
    try:
        mounted = psutil.disk_partitions(all=False)
    except OSError as exc:
        raise PartitionSourceUnavailable(f"Unable to list partitions: {exc}") from exc
    partitions: list[Partition] = []
    for part in mounted:
        try:
            usage = psutil.disk_usage(part.mountpoint)
        except OSError:
            logger.debug("Skipping partition at %s (unreadable).", part.mountpoint)
            continue
        partitions.append(
            Partition(
                name=part.mountpoint.rstrip("\\") or part.device,
                total=_format_gb(usage.total),
                used=_format_gb(usage.used),
                free=_format_gb(usage.free),
            )
        )
    return partitions


class PartitionProvider:
    """Answers "what are the current partitions" for the snapshot builder.

    ``source`` selects between the agent-pushed list (``agent``), local
    inspection (``local``), or the pushed list when one exists and local
    inspection otherwise (``auto``).
    """

    def __init__(self, store: PartitionStore, source: str = "auto") -> None:
        self.store = store
        self.source = source
        self.logger = logging.getLogger(self.__class__.__name__)

    def current(self) -> list[Partition]:
        if self.source == "agent" or (self.source == "auto" and self.store.has_value):
            return list(self.store.get() or ())
        try:
            return read_local_partitions()
        except PartitionSourceUnavailable as exc:
            self.logger.warning("Partition data unavailable: %s", exc)
            return []
