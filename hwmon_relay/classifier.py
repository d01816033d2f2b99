"""Route top-level hardware nodes into snapshot sections.

Hardware nodes are recognised by free-text label only, so the routing is an
ordered table of rules: vendor-specific matchers first, then generic words.
The first rule whose matcher accepts a label wins.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from collections.abc import Callable, Iterable
from typing import Any

from hwmon_relay.logging_utils import TRACE_LEVEL
from hwmon_relay.models import DriveSummary, SnapshotDraft
from hwmon_relay.tree import (
    UNAVAILABLE,
    SensorCategory,
    SensorNode,
    extract,
    find_value,
    normalize_value,
)

Matcher = Callable[[str], bool]
Handler = Callable[[SensorNode, SnapshotDraft], None]


@dataclass(frozen=True)
class ComponentRule:
    section: str
    matcher: Matcher
    handler: Handler


def label_contains(*needles: str) -> Matcher:
    lowered = tuple(needle.lower() for needle in needles)

    def matcher(label: str) -> bool:
        text = label.lower()
        return any(needle in text for needle in lowered)

    return matcher


# Sensor group label -> (category, summary field)
CPU_GROUPS: dict[str, tuple[SensorCategory, str]] = {
    "Voltages": (SensorCategory.VOLTAGE, "voltage"),
    "Temperatures": (SensorCategory.TEMPERATURE, "temp"),
    "Load": (SensorCategory.LOAD, "load"),
    "Fans": (SensorCategory.FAN, "fan_rpm"),
    "Clocks": (SensorCategory.CLOCK, "clock"),
    "Powers": (SensorCategory.POWER, "power"),
}

GPU_GROUPS: dict[str, tuple[SensorCategory, str]] = {
    "Clocks": (SensorCategory.CLOCK, "clock"),
    "Temperatures": (SensorCategory.TEMPERATURE, "temp"),
    "Load": (SensorCategory.LOAD, "load"),
    "Fans": (SensorCategory.FAN, "fan_rpm"),
    "Powers": (SensorCategory.POWER, "power"),
}

MOTHERBOARD_GROUPS: dict[str, tuple[SensorCategory, str]] = {
    "Voltages": (SensorCategory.VOLTAGE, "voltages"),
    "Temperatures": (SensorCategory.TEMPERATURE, "temps"),
    "Fans": (SensorCategory.FAN, "fans"),
}

GPU_MEMORY_GROUPS = {"Data", "SmallData"}


def _fill(target: Any, field: str, value: Any) -> None:
    """Keep the first real reading of a tick for scalar fields."""
    if value == UNAVAILABLE:
        return
    if getattr(target, field) == UNAVAILABLE:
        setattr(target, field, value)


def _first_reading(node: SensorNode, category: SensorCategory) -> Any:
    readings: list[dict[str, Any]] = []
    extract(node, category, readings)
    return readings[0]["value"] if readings else UNAVAILABLE


def _extract_groups(
    node: SensorNode,
    groups: dict[str, tuple[SensorCategory, str]],
    summary: Any,
) -> None:
    for group in node.children:
        entry = groups.get(group.label)
        if entry is None:
            continue
        category, field = entry
        extract(group, category, getattr(summary, field))


def handle_cpu(node: SensorNode, draft: SnapshotDraft) -> None:
    _extract_groups(node, CPU_GROUPS, draft.cpu)


def handle_motherboard(node: SensorNode, draft: SnapshotDraft) -> None:
    # Board sensors hang off a Super I/O chip one level below the board node
    for chip in node.children:
        _extract_groups(chip, MOTHERBOARD_GROUPS, draft.motherboard)


def handle_ram(node: SensorNode, draft: SnapshotDraft) -> None:
    # Newer monitor builds expose "Virtual Memory" as its own hardware node
    # whose sensors are labelled like the physical ones.
    prefix = "virtual_" if "virtual" in node.label.lower() else ""
    ram = draft.ram
    for group in node.children:
        if group.label == "Load":
            load = find_value(group, "Memory")
            if load == UNAVAILABLE:
                load = _first_reading(group, SensorCategory.LOAD)
            _fill(ram, f"{prefix}load", load)
            _fill(ram, "virtual_load", find_value(group, "Virtual Memory"))
        elif group.label == "Data":
            _fill(ram, f"{prefix}used", find_value(group, "Memory Used"))
            _fill(ram, f"{prefix}available", find_value(group, "Memory Available"))
            _fill(ram, "virtual_used", find_value(group, "Virtual Memory Used"))
            _fill(ram, "virtual_available", find_value(group, "Virtual Memory Available"))


def handle_gpu(node: SensorNode, draft: SnapshotDraft) -> None:
    _extract_groups(node, GPU_GROUPS, draft.gpu)
    for group in node.children:
        if group.label in GPU_MEMORY_GROUPS:
            for sensor in group.children:
                draft.gpu.memory[sensor.label] = normalize_value(sensor.value)


def handle_drive(node: SensorNode, draft: SnapshotDraft) -> None:
    drive = DriveSummary(name=node.label)
    for group in node.children:
        # A drive's "Load" group mixes activity and used-space readings under
        # one category, so fields are picked by exact label.
        if group.label == "Load":
            _fill(drive, "used", find_value(group, "Used Space"))
        elif group.label == "Temperatures":
            temperature = find_value(group, "Temperature")
            if temperature == UNAVAILABLE:
                temperature = _first_reading(group, SensorCategory.TEMPERATURE)
            _fill(drive, "temperature", temperature)
        elif group.label == "Throughput":
            _fill(drive, "read_speed", find_value(group, "Read Rate"))
            _fill(drive, "write_speed", find_value(group, "Write Rate"))
    draft.drives.append(drive)


def handle_network(node: SensorNode, draft: SnapshotDraft) -> None:
    network = draft.network
    for group in node.children:
        if group.label == "Load":
            _fill(network, "utilization", find_value(group, "Network Utilization"))
        elif group.label == "Data":
            for sensor in group.children:
                if "Data Uploaded" in sensor.label:
                    _fill(network, "uploaded", normalize_value(sensor.value))
                elif "Data Downloaded" in sensor.label:
                    _fill(network, "downloaded", normalize_value(sensor.value))
        elif group.label == "Throughput":
            for sensor in group.children:
                if "Upload Speed" in sensor.label:
                    _fill(network, "sent", normalize_value(sensor.value))
                elif "Download Speed" in sensor.label:
                    _fill(network, "received", normalize_value(sensor.value))


CLASSIFIER_RULES: tuple[ComponentRule, ...] = (
    # Vendor-specific identities
    ComponentRule("motherboard", label_contains("Gigabyte", "ASUS", "MSI", "ASRock"), handle_motherboard),
    ComponentRule("cpu", label_contains("Intel Core", "AMD Ryzen", "Intel Xeon", "AMD EPYC"), handle_cpu),
    ComponentRule("gpu", label_contains("NVIDIA GeForce", "AMD Radeon", "Intel Arc"), handle_gpu),
    ComponentRule(
        "drives",
        label_contains("WD Blue", "WDC", "Samsung SSD", "Crucial", "Kingston", "Seagate"),
        handle_drive,
    ),
    # Generic fallbacks
    ComponentRule("ram", label_contains("Memory"), handle_ram),
    ComponentRule("cpu", label_contains("CPU", "Processor"), handle_cpu),
    ComponentRule("gpu", label_contains("GPU", "Graphics"), handle_gpu),
    ComponentRule("motherboard", label_contains("Motherboard", "Mainboard"), handle_motherboard),
    ComponentRule("drives", label_contains("SSD", "HDD", "NVMe", "Hard Disk"), handle_drive),
    ComponentRule("network", label_contains("Ethernet", "Wi-Fi", "WiFi", "Network"), handle_network),
)


class ComponentClassifier:
    def __init__(self, rules: Iterable[ComponentRule] = CLASSIFIER_RULES) -> None:
        self.rules = tuple(rules)
        self.logger = logging.getLogger(self.__class__.__name__)

    def match(self, node: SensorNode) -> ComponentRule | None:
        return next((rule for rule in self.rules if rule.matcher(node.label)), None)

    def classify(self, nodes: Iterable[SensorNode], draft: SnapshotDraft) -> list[str]:
        """Feed every recognised node into ``draft``; return matched sections in order."""
        matched: list[str] = []
        for node in nodes:
            rule = self.match(node)
            if rule is None:
                self.logger.log(TRACE_LEVEL, "Ignoring unrecognised hardware node %r", node.label)
                continue
            self.logger.log(TRACE_LEVEL, "Routing %r to %s", node.label, rule.section)
            rule.handler(node, draft)
            matched.append(rule.section)
        return matched
