"""Host environment the tracker runs inside.

The tracker never reaches for globals: page URL, storage, viewport metrics,
performance timings and lifecycle notifications all come from a ``PageHost``
supplied by the embedding application. Storage and listener semantics mirror
what a browser page offers (session/local storage, add/remove listener).
"""

from dataclasses import dataclass, field
from typing import Callable

from loguru import logger

VISIBILITY_CHANGE = "visibilitychange"
BEFORE_UNLOAD = "beforeunload"
SCROLL = "scroll"
NAVIGATE = "navigate"


class MemoryStorage:
    """String key/value storage with the session/local storage interface."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


@dataclass
class PageState:
    url: str = ""
    path: str = "/"
    title: str = ""
    referrer: str = ""
    scroll_top: float = 0.0
    scroll_height: float = 0.0
    viewport_width: int | None = None
    viewport_height: float = 0.0
    screen_width: int | None = None
    screen_height: int | None = None


@dataclass
class ResourceTiming:
    name: str
    transfer_size: int = 0


@dataclass
class NavigationTiming:
    """Navigation/paint timings in milliseconds relative to navigation start."""

    load_event_end: float | None = None
    dom_content_loaded_event_end: float | None = None
    first_contentful_paint: float | None = None
    largest_contentful_paint: float | None = None
    first_input_delay: float | None = None
    cumulative_layout_shift: float | None = None
    time_to_interactive: float | None = None
    resources: list[ResourceTiming] = field(default_factory=list)


class Subscription:
    """Handle for one registered listener; ``unsubscribe`` is idempotent."""

    def __init__(self, host: "PageHost", event: str, callback: Callable[[], None]):
        self.event = event
        self.callback = callback
        self._host = host
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._host._remove_listener(self)
            self.active = False


class PageHost:
    """Everything the tracker reads from its surroundings.

    ``performance`` is ``None`` where no performance timings exist; callers
    degrade to empty snapshots rather than failing.
    """

    def __init__(
        self,
        page: PageState | None = None,
        session_storage: MemoryStorage | None = None,
        local_storage: MemoryStorage | None = None,
        user_agent: str = "",
        language: str | None = None,
        time_zone: str | None = None,
        performance: NavigationTiming | None = None,
    ):
        self.page = page or PageState()
        self.session_storage = session_storage if session_storage is not None else MemoryStorage()
        self.local_storage = local_storage if local_storage is not None else MemoryStorage()
        self.user_agent = user_agent
        self.language = language
        self.time_zone = time_zone
        self.performance = performance
        self.visibility_state = "visible"
        self._listeners: dict[str, list[Subscription]] = {}

    def add_listener(self, event: str, callback: Callable[[], None]) -> Subscription:
        sub = Subscription(self, event, callback)
        self._listeners.setdefault(event, []).append(sub)
        return sub

    def _remove_listener(self, sub: Subscription) -> None:
        subs = self._listeners.get(sub.event, [])
        if sub in subs:
            subs.remove(sub)

    def listener_count(self, event: str | None = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, []))
        return sum(len(subs) for subs in self._listeners.values())

    def emit(self, event: str) -> None:
        """Invoke every listener for ``event``; a failing listener does not stop the rest."""
        for sub in list(self._listeners.get(event, [])):
            try:
                sub.callback()
            except Exception as e:
                logger.error(f"Listener for {event} failed: {e}")

    # Convenience transitions used by embedding code and tests

    def set_visibility(self, state: str) -> None:
        self.visibility_state = state
        self.emit(VISIBILITY_CHANGE)

    def unload(self) -> None:
        self.emit(BEFORE_UNLOAD)

    def scroll_to(self, scroll_top: float) -> None:
        self.page.scroll_top = scroll_top
        self.emit(SCROLL)

    def navigate(
        self,
        path: str,
        title: str = "",
        url: str | None = None,
        scroll_height: float | None = None,
        performance: NavigationTiming | None = None,
    ) -> None:
        previous_url = self.page.url
        self.page.path = path
        self.page.title = title
        self.page.url = url if url is not None else path
        self.page.referrer = previous_url
        self.page.scroll_top = 0.0
        if scroll_height is not None:
            self.page.scroll_height = scroll_height
        self.performance = performance
        self.emit(NAVIGATE)
