"""Shared fakes: recording transports, a controllable clock, a tracker factory."""

import json

import pytest

from src.tracker.config import TrackerSettings
from src.tracker.host import MemoryStorage, PageHost, PageState
from src.tracker.tracker import BeaconTracker
from src.tracker.transport import DeliveryError

COLLECTOR_URL = "https://shop.example/api/analytics/track"
CHROME_DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingSend:
    """Standard transport fake. Fails the first ``fail_times`` calls, or
    every call when ``always_fail``, or calls to URLs containing ``fail_on``."""

    def __init__(self, fail_times: int = 0, always_fail: bool = False, fail_on: str | None = None):
        self.calls: list[tuple[str, dict]] = []
        self.fail_times = fail_times
        self.always_fail = always_fail
        self.fail_on = fail_on

    async def __call__(self, url: str, payload: bytes) -> None:
        self.calls.append((url, json.loads(payload)))
        if self.fail_on is not None and self.fail_on in url:
            raise DeliveryError("sink down")
        if self.always_fail:
            raise DeliveryError("collector down")
        if self.fail_times > 0:
            self.fail_times -= 1
            raise DeliveryError("collector down")

    async def aclose(self) -> None:
        pass

    def batches(self, url: str = COLLECTOR_URL) -> list[list[dict]]:
        return [body["Events"] for u, body in self.calls if u == url]


class RecordingBeacon:
    def __init__(self, accept: bool = True):
        self.calls: list[tuple[str, dict]] = []
        self.accept = accept

    def __call__(self, url: str, payload: bytes) -> bool:
        self.calls.append((url, json.loads(payload)))
        return self.accept


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def host():
    return PageHost(
        page=PageState(
            url="https://shop.example/products",
            path="/products",
            title="Products",
            referrer="https://search.example/?q=spices",
            scroll_height=1100,
            viewport_height=100,
            viewport_width=1280,
        ),
        session_storage=MemoryStorage(),
        local_storage=MemoryStorage(),
        user_agent=CHROME_DESKTOP_UA,
        language="en-IN",
        time_zone="Asia/Kolkata",
    )


@pytest.fixture
def make_tracker(host, clock):
    """Build a tracker with recording transports; returns (tracker, send, beacon)."""

    def _make(send: RecordingSend | None = None, beacon: RecordingBeacon | None = None, **overrides):
        settings = {
            "is_enabled": True,
            "custom_endpoint": COLLECTOR_URL,
            "batch_size": 10,
            "flush_interval": 60.0,
            "retry_delay": 0.0,
            "scroll_debounce": 0.0,
        }
        settings.update(overrides)
        send = send or RecordingSend()
        beacon = beacon or RecordingBeacon()
        tracker = BeaconTracker(
            TrackerSettings(**settings),
            host,
            standard_send=send,
            reliable_send=beacon,
            clock=clock,
        )
        return tracker, send, beacon

    return _make
