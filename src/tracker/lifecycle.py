"""Page lifecycle listeners.

Hidden/unload transitions flush the queue over the reliable transport inside
the listener itself; the page may be gone before any scheduled work runs.
Scroll is debounced and turned into milestone events at each quarter of the
page.
"""

import asyncio
from typing import Callable

from src.tracker.host import BEFORE_UNLOAD, NAVIGATE, SCROLL, VISIBILITY_CHANGE, PageHost, Subscription

MILESTONE_STEP = 25


def is_scroll_milestone(depth: int) -> bool:
    return depth > 0 and depth % MILESTONE_STEP == 0


class LifecycleHooks:
    def __init__(
        self,
        host: PageHost,
        flush: Callable[[bool], None],
        scroll_depth: Callable[[], int],
        on_milestone: Callable[[int], None],
        on_navigate: Callable[[], None],
        scroll_debounce: float = 1.0,
    ):
        self.host = host
        self.flush = flush
        self.scroll_depth = scroll_depth
        self.on_milestone = on_milestone
        self.on_navigate = on_navigate
        self.scroll_debounce = scroll_debounce
        self.subscriptions: list[Subscription] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._scroll_handle: asyncio.TimerHandle | None = None

    def install(self, loop: asyncio.AbstractEventLoop) -> list[Subscription]:
        self._loop = loop
        self.subscriptions = [
            self.host.add_listener(VISIBILITY_CHANGE, self.handle_visibility_change),
            self.host.add_listener(BEFORE_UNLOAD, self.handle_unload),
            self.host.add_listener(SCROLL, self.handle_scroll),
            self.host.add_listener(NAVIGATE, self.on_navigate),
        ]
        return self.subscriptions

    def remove(self) -> None:
        for sub in self.subscriptions:
            sub.unsubscribe()
        self.subscriptions = []
        if self._scroll_handle is not None:
            self._scroll_handle.cancel()
            self._scroll_handle = None

    def handle_visibility_change(self) -> None:
        if self.host.visibility_state == "hidden":
            self.flush(True)

    def handle_unload(self) -> None:
        self.flush(True)

    def handle_scroll(self) -> None:
        """Restart the debounce window; the milestone check runs once scrolling settles."""
        if self._scroll_handle is not None:
            self._scroll_handle.cancel()
        if self._loop is None or self._loop.is_closed():
            self.check_scroll_milestone()
            return
        self._scroll_handle = self._loop.call_later(self.scroll_debounce, self._scroll_settled)

    def _scroll_settled(self) -> None:
        self._scroll_handle = None
        self.check_scroll_milestone()

    def check_scroll_milestone(self) -> int | None:
        depth = self.scroll_depth()
        if is_scroll_milestone(depth):
            self.on_milestone(depth)
            return depth
        return None
