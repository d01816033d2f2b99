from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from hwmon_relay.tree import UNAVAILABLE

SNAPSHOT_SECTIONS = (
    "hostname",
    "os",
    "uptime",
    "cpu",
    "motherboard",
    "ram",
    "gpu",
    "drives",
    "network",
    "partitions",
)


@dataclass
class CpuSummary:
    voltage: list[dict[str, Any]] = field(default_factory=list)
    temp: list[dict[str, Any]] = field(default_factory=list)
    load: list[dict[str, Any]] = field(default_factory=list)
    fan_rpm: list[dict[str, Any]] = field(default_factory=list)
    clock: list[dict[str, Any]] = field(default_factory=list)
    power: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class MotherboardSummary:
    voltages: list[dict[str, Any]] = field(default_factory=list)
    temps: list[dict[str, Any]] = field(default_factory=list)
    fans: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class RamSummary:
    load: Any = UNAVAILABLE
    used: Any = UNAVAILABLE
    available: Any = UNAVAILABLE
    virtual_load: Any = UNAVAILABLE
    virtual_used: Any = UNAVAILABLE
    virtual_available: Any = UNAVAILABLE


@dataclass
class GpuSummary:
    fan_rpm: list[dict[str, Any]] = field(default_factory=list)
    load: list[dict[str, Any]] = field(default_factory=list)
    clock: list[dict[str, Any]] = field(default_factory=list)
    power: list[dict[str, Any]] = field(default_factory=list)
    memory: dict[str, Any] = field(default_factory=dict)
    temp: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class DriveSummary:
    name: str
    used: Any = UNAVAILABLE
    temperature: Any = UNAVAILABLE
    read_speed: Any = UNAVAILABLE
    write_speed: Any = UNAVAILABLE


@dataclass
class NetworkSummary:
    sent: Any = UNAVAILABLE
    received: Any = UNAVAILABLE
    uploaded: Any = UNAVAILABLE
    downloaded: Any = UNAVAILABLE
    utilization: Any = UNAVAILABLE


@dataclass(frozen=True)
class Partition:
    name: str
    total: Any
    used: Any
    free: Any

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Partition:
        return cls(
            name=str(raw["name"]),
            total=raw.get("total", UNAVAILABLE),
            used=raw.get("used", UNAVAILABLE),
            free=raw.get("free", UNAVAILABLE),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SnapshotDraft:
    """Mutable per-tick accumulator the classifier fills in."""

    cpu: CpuSummary = field(default_factory=CpuSummary)
    motherboard: MotherboardSummary = field(default_factory=MotherboardSummary)
    ram: RamSummary = field(default_factory=RamSummary)
    gpu: GpuSummary = field(default_factory=GpuSummary)
    drives: list[DriveSummary] = field(default_factory=list)
    network: NetworkSummary = field(default_factory=NetworkSummary)


@dataclass(frozen=True)
class Snapshot:
    hostname: str
    os: str
    uptime: int
    cpu: CpuSummary = field(default_factory=CpuSummary)
    motherboard: MotherboardSummary = field(default_factory=MotherboardSummary)
    ram: RamSummary = field(default_factory=RamSummary)
    gpu: GpuSummary = field(default_factory=GpuSummary)
    drives: tuple[DriveSummary, ...] = ()
    network: NetworkSummary = field(default_factory=NetworkSummary)
    partitions: tuple[Partition, ...] = ()

    @classmethod
    def from_draft(
        cls,
        draft: SnapshotDraft,
        hostname: str,
        os: str,
        uptime: int,
        partitions: list[Partition] | tuple[Partition, ...] = (),
    ) -> Snapshot:
        return cls(
            hostname=hostname,
            os=os,
            uptime=uptime,
            cpu=draft.cpu,
            motherboard=draft.motherboard,
            ram=draft.ram,
            gpu=draft.gpu,
            drives=tuple(draft.drives),
            network=draft.network,
            partitions=tuple(partitions),
        )

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["drives"] = list(payload["drives"])
        payload["partitions"] = list(payload["partitions"])
        return {key: payload[key] for key in SNAPSHOT_SECTIONS}
