"""Fan a batch out to every configured destination."""

import asyncio

from loguru import logger

from src.tracker.destinations import CustomEndpointDestination
from src.tracker.schemas import AnalyticsEvent


class Dispatcher:
    """Sends batches to the primary collector and any secondary sinks.

    Destinations are independent: one failing never blocks another. Only the
    primary's outcome is reported back, since only it is retried.
    """

    def __init__(self, primary: CustomEndpointDestination | None, secondaries: list | None = None):
        self.primary = primary
        self.secondaries = list(secondaries or [])

    def send_reliable(self, events: list[AnalyticsEvent]) -> bool:
        """Synchronous primary delivery over the reliable transport.

        True when the primary is taken care of (sent, or there is none);
        False when the reliable transport refused the payload. Raises
        DeliveryError when the batch cannot be serialized.
        """
        if self.primary is None:
            return True
        return self.primary.send_reliable(events)

    async def send_primary(self, events: list[AnalyticsEvent]) -> None:
        if self.primary is not None:
            await self.primary.send(events)

    async def dispatch(self, events: list[AnalyticsEvent], include_primary: bool = True) -> bool:
        """Send to all destinations concurrently; returns whether the primary succeeded."""
        destinations = list(self.secondaries)
        if include_primary and self.primary is not None:
            destinations.insert(0, self.primary)
        if not destinations:
            return True

        results = await asyncio.gather(
            *(d.send(events) for d in destinations), return_exceptions=True
        )

        primary_ok = True
        for destination, result in zip(destinations, results):
            if not isinstance(result, Exception):
                continue
            if destination is self.primary:
                primary_ok = False
                logger.warning(f"Primary delivery of {len(events)} events failed: {result}")
            else:
                logger.warning(f"Delivery to {destination.name} failed, dropping: {result}")
        return primary_ok
