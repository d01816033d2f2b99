from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from hwmon_relay.builder import SnapshotBuilder
from hwmon_relay.delta import Connection, DeltaPublisher, SubscriptionState
from hwmon_relay.errors import DeliveryDeferred


class SubscriptionManager:
    """Owns every push subscriber and its ticker task.

    Each subscriber gets its own fetch per tick and its own diff state; a
    subscriber's ticker is always cancelled before its state is dropped.
    """

    def __init__(
        self,
        builder: SnapshotBuilder,
        publisher: DeltaPublisher | None = None,
        interval_s: float = 1.0,
    ) -> None:
        self.builder = builder
        self.publisher = publisher or DeltaPublisher()
        self.interval_s = max(0.1, interval_s)
        self.logger = logging.getLogger(self.__class__.__name__)
        self._states: set[SubscriptionState] = set()

    @property
    def active(self) -> int:
        return len(self._states)

    async def run_cycle(self, state: SubscriptionState) -> dict[str, Any] | None:
        """Build one snapshot and publish it to ``state``.

        A failed build skips the tick. Errors raised while sending propagate.
        """
        try:
            snapshot = await self.builder.build_async()
        except Exception:
            self.logger.exception("Snapshot build failed, skipping tick for subscriber %s", id(state))
            return None
        if snapshot is None or state.closed:
            return None
        return await self.publisher.publish(state, snapshot)

    async def _safe_cycle(self, state: SubscriptionState) -> bool:
        try:
            await self.run_cycle(state)
        except asyncio.CancelledError:
            raise
        except DeliveryDeferred as exc:
            # last_sent is untouched, so the next tick resends the missed change
            self.logger.warning("Subscriber %s missed a tick: %s", id(state), exc)
        except Exception as exc:
            self.logger.warning("Dropping subscriber %s after send failure: %s", id(state), exc)
            state.closed = True
            self._states.discard(state)
            return False
        return True

    async def _tick(self, state: SubscriptionState) -> None:
        loop = asyncio.get_running_loop()
        next_run = loop.time() + self.interval_s
        while not state.closed:
            await asyncio.sleep(max(0.0, next_run - loop.time()))
            if state.closed or not await self._safe_cycle(state):
                return
            next_run += self.interval_s
            # A slow tick skips missed slots instead of bursting to catch up
            if next_run < loop.time():
                next_run = loop.time() + self.interval_s

    async def subscribe(self, connection: Connection) -> SubscriptionState:
        state = SubscriptionState(connection=connection)
        self._states.add(state)
        self.logger.info("Subscriber %s connected (%s active).", id(state), self.active)
        if await self._safe_cycle(state):
            state.task = asyncio.create_task(self._tick(state))
        return state

    async def unsubscribe(self, state: SubscriptionState) -> None:
        state.closed = True
        self._states.discard(state)
        task = state.task
        state.task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        state.last_sent = None
        self.logger.info("Subscriber %s disconnected (%s active).", id(state), self.active)

    async def close_all(self) -> None:
        for state in list(self._states):
            await self.unsubscribe(state)
