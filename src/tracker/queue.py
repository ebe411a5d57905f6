"""In-memory event queue and the periodic flush timer."""

import asyncio
from typing import Callable

from loguru import logger

from src.tracker.schemas import AnalyticsEvent


class EventQueue:
    """Insertion-ordered buffer of enriched events.

    Events leave only through ``take_all``, which hands back the whole
    contents and leaves a fresh empty list in place, so anything added while
    a batch is in flight lands in the next batch.
    """

    def __init__(self, batch_size: int):
        self.batch_size = batch_size
        self._events: list[AnalyticsEvent] = []

    def add(self, event: AnalyticsEvent) -> bool:
        """Append ``event``; True when the queue has reached the batch size."""
        self._events.append(event)
        return len(self._events) >= self.batch_size

    def take_all(self) -> list[AnalyticsEvent]:
        batch, self._events = self._events, []
        return batch

    def snapshot(self) -> list[AnalyticsEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)


class PeriodicFlusher:
    """Calls ``flush`` every ``interval`` seconds while the queue is non-empty."""

    def __init__(self, queue: EventQueue, interval: float, flush: Callable[[], None]):
        self.queue = queue
        self.interval = interval
        self.flush = flush
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if len(self.queue) > 0:
                try:
                    self.flush()
                except Exception as e:
                    logger.warning(f"Periodic flush failed: {e}")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
