"""Per-subscriber delta publishing.

Each subscriber gets the full snapshot on first contact. After that only the
top-level sections whose value changed are sent, each section replaced as a
whole; a single changed reading inside ``cpu`` retransmits all of ``cpu``.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any, Protocol

from hwmon_relay.logging_utils import TRACE_LEVEL
from hwmon_relay.models import SNAPSHOT_SECTIONS, Snapshot


class Connection(Protocol):
    async def send(self, message: dict[str, Any]) -> None: ...


@dataclass(eq=False)
class SubscriptionState:
    connection: Connection
    last_sent: Snapshot | None = None
    task: asyncio.Task[None] | None = None
    closed: bool = False


def compute_changeset(previous: Snapshot | None, current: Snapshot) -> dict[str, Any]:
    current_dict = current.to_dict()
    if previous is None:
        return current_dict
    previous_dict = previous.to_dict()
    return {
        key: current_dict[key]
        for key in SNAPSHOT_SECTIONS
        if current_dict[key] != previous_dict[key]
    }


class DeltaPublisher:
    def __init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)

    async def publish(self, state: SubscriptionState, snapshot: Snapshot) -> dict[str, Any] | None:
        """Send ``snapshot`` (or what changed since the last send) to a subscriber.

        Returns the message that was sent, or None when nothing went out.
        """
        if state.closed:
            return None
        message = compute_changeset(state.last_sent, snapshot)
        if not message:
            self.logger.log(TRACE_LEVEL, "No changes for subscriber %s", id(state))
            return None
        first = state.last_sent is None
        await state.connection.send(message)
        # Always diff against the last full state, never the change-set
        state.last_sent = snapshot
        self.logger.debug(
            "Sent %s to subscriber %s",
            "full snapshot" if first else f"change-set {sorted(message)}",
            id(state),
        )
        return message
