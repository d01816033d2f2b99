"""Sensor tree model and category extraction.

LibreHardwareMonitor's ``data.json`` is a tree of ``{"Text", "Type", "Value",
"Children"}`` objects with no stable identifiers; hardware, sensor groups and
sensors only differ by convention. This module turns the decoded JSON into
``SensorNode`` values and pulls readings of one category out of a subtree.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from collections.abc import Iterator, Mapping, MutableMapping
from typing import Any

UNAVAILABLE = "N/A"


class SensorCategory(str, Enum):
    VOLTAGE = "Voltage"
    TEMPERATURE = "Temperature"
    LOAD = "Load"
    FAN = "Fan"
    CLOCK = "Clock"
    POWER = "Power"
    THROUGHPUT = "Throughput"
    DATA = "Data"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, raw: Any) -> SensorCategory:
        if not isinstance(raw, str):
            return cls.UNKNOWN
        lowered = raw.strip().lower()
        if lowered == "smalldata":
            return cls.DATA
        for member in cls:
            if member.value.lower() == lowered:
                return member
        return cls.UNKNOWN


@dataclass(frozen=True)
class SensorNode:
    label: str
    category: SensorCategory = SensorCategory.UNKNOWN
    value: Any = None
    children: tuple[SensorNode, ...] = ()

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> SensorNode:
        label = str(raw.get("Text") or "").replace("\x00", "").strip()
        # Newer LHM builds report the kind under "Type", older ones under "SensorType"
        category = SensorCategory.parse(raw.get("Type"))
        if category is SensorCategory.UNKNOWN:
            category = SensorCategory.parse(raw.get("SensorType"))
        raw_children = raw.get("Children")
        children: tuple[SensorNode, ...] = ()
        if isinstance(raw_children, list):
            children = tuple(
                cls.from_json(child) for child in raw_children if isinstance(child, Mapping)
            )
        return cls(label=label, category=category, value=raw.get("Value"), children=children)

    def walk(self) -> Iterator[SensorNode]:
        """Yield every descendant depth-first, pre-order, in document order."""
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


def normalize_value(value: Any) -> Any:
    if value is None:
        return UNAVAILABLE
    if isinstance(value, str) and not value.strip():
        return UNAVAILABLE
    return value


def _assign(output: Any, field: str, value: Any) -> None:
    if isinstance(output, MutableMapping):
        output[field] = value
    else:
        setattr(output, field, value)


def extract(
    node: SensorNode,
    category: SensorCategory,
    output: Any,
    field_map: Mapping[str, str] | None = None,
) -> None:
    """Collect every descendant of ``node`` whose category is ``category``.

    Without ``field_map`` each match is appended to ``output`` as
    ``{"name": label, "value": value}``. With ``field_map`` the value of a
    matching sensor whose label is mapped is written into that field of
    ``output`` instead, and unmapped labels are ignored.
    """
    for sensor in node.walk():
        if sensor.category is not category:
            continue
        value = normalize_value(sensor.value)
        if field_map is None:
            output.append({"name": sensor.label, "value": value})
        elif sensor.label in field_map:
            _assign(output, field_map[sensor.label], value)


def find_child(node: SensorNode, label: str) -> SensorNode | None:
    return next((child for child in node.children if child.label == label), None)


def find_value(node: SensorNode, label: str, default: Any = UNAVAILABLE) -> Any:
    child = find_child(node, label)
    if child is None:
        return default
    value = normalize_value(child.value)
    return default if value == UNAVAILABLE else value
