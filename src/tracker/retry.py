"""One-shot retry buffer for batches the primary collector rejected."""

import asyncio
from typing import Awaitable, Callable, Coroutine

from loguru import logger

from src.tracker.schemas import AnalyticsEvent
from src.tracker.transport import DeliveryError


class RetryQueue:
    """Holds failed events apart from the live queue and resends them once.

    Every ``add`` schedules a redelivery after ``delay`` seconds; whichever
    redelivery fires first takes the whole buffer as one batch and clears
    it, success or not. Events that fail again are dropped.
    """

    def __init__(
        self,
        send: Callable[[list[AnalyticsEvent]], Awaitable[None]],
        delay: float,
        spawn: Callable[[Coroutine], None],
    ):
        self.send = send
        self.delay = delay
        self.spawn = spawn
        self._events: list[AnalyticsEvent] = []

    def add(self, events: list[AnalyticsEvent]) -> None:
        self._events.extend(events)
        self.spawn(self._retry_later())

    async def _retry_later(self) -> None:
        await asyncio.sleep(self.delay)
        await self.retry_now()

    async def retry_now(self) -> bool:
        """Resend the buffer once. Returns False when the batch was dropped."""
        batch, self._events = self._events, []
        if not batch:
            return True
        try:
            await self.send(batch)
        except DeliveryError as e:
            logger.warning(f"Retry failed, discarding {len(batch)} events: {e}")
            return False
        return True

    def __len__(self) -> int:
        return len(self._events)
