"""Network transports for batch delivery.

Two strategies, picked per flush:

- ``ReliableSend``: synchronous, one-way, meant to survive page teardown.
  Returns whether the payload was accepted for sending; it cannot report
  delivery failure, so an accepted payload counts as delivered.
- ``StandardSend``: an awaited POST that raises ``DeliveryError`` on any
  non-2xx response or network error.

Both are plain callables so the embedding application can swap in whatever
primitives its platform has.
"""

from typing import Protocol

import httpx
from loguru import logger

# Browsers cap beacon payloads at 64 KiB.
MAX_BEACON_BYTES = 64 * 1024
JSON_HEADERS = {"Content-Type": "application/json"}


class DeliveryError(Exception):
    """A destination did not accept a payload."""


class ReliableSend(Protocol):
    def __call__(self, url: str, payload: bytes) -> bool: ...


class StandardSend(Protocol):
    async def __call__(self, url: str, payload: bytes) -> None: ...


class BeaconSend:
    """Blocking fire-and-forget POST with a short timeout; never raises.

    The POST runs on the calling thread, so when it is called from a
    coroutine the event loop stalls for up to ``timeout`` seconds.
    """

    def __init__(self, timeout: float = 2.0, transport: httpx.BaseTransport | None = None):
        self.timeout = timeout
        self.transport = transport

    def __call__(self, url: str, payload: bytes) -> bool:
        if len(payload) > MAX_BEACON_BYTES:
            return False
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                client.post(url, content=payload, headers=JSON_HEADERS)
        except httpx.HTTPError as e:
            # One-way by contract: the payload was handed off.
            logger.debug(f"Beacon to {url} did not complete: {e}")
        return True


class KeepaliveSend:
    """POST over a shared ``httpx.AsyncClient``; non-2xx raises DeliveryError."""

    def __init__(self, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __call__(self, url: str, payload: bytes) -> None:
        try:
            response = await self.client.post(url, content=payload, headers=JSON_HEADERS)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryError(f"POST {url} failed: {e}") from e

    async def aclose(self) -> None:
        await self.client.aclose()
