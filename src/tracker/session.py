"""Session identity and per-page state.

The session id lives for the lifetime of the tracker (one browsing context);
cross-page counters live in session storage so they survive in-tab
navigation, and the returning-user marker lives in long-lived storage.
"""

import random
import string
import time
from typing import Callable

from src.tracker.host import MemoryStorage
from src.tracker.schemas import SessionInfo

SESSION_START_KEY = "analytics_session_start"
PAGE_VIEWS_KEY = "analytics_page_views"
ENTRY_PAGE_KEY = "analytics_entry_page"
PREVIOUS_PAGE_KEY = "analytics_previous_page"
CURRENT_PAGE_KEY = "analytics_current_page"
RETURNING_USER_KEY = "analytics_returning_user"

_BASE36 = string.digits + string.ascii_lowercase


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_session_id(clock: Callable[[], int] = now_ms) -> str:
    """``session_<epoch ms>_<9 random base36 chars>``."""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"session_{clock()}_{suffix}"


class SessionContext:
    def __init__(
        self,
        session_storage: MemoryStorage,
        local_storage: MemoryStorage,
        clock: Callable[[], int] = now_ms,
    ):
        self.session_storage = session_storage
        self.local_storage = local_storage
        self.clock = clock
        self.session_id = generate_session_id(clock)
        self.user_id: str | None = None
        self.is_new_session = True
        self.is_returning_user = local_storage.get_item(RETURNING_USER_KEY) == "true"
        self._page_entry_time: int | None = None

    def set_user_id(self, user_id: str) -> None:
        self.user_id = user_id

    def record_page_view(self, path: str) -> None:
        """Update the session counters for a new page view."""
        storage = self.session_storage
        if storage.get_item(SESSION_START_KEY) is None:
            storage.set_item(SESSION_START_KEY, str(self.clock()))
            storage.set_item(ENTRY_PAGE_KEY, path)
            storage.set_item(PAGE_VIEWS_KEY, "1")
            self.is_new_session = True
        else:
            storage.set_item(PAGE_VIEWS_KEY, str(self.page_views + 1))
            self.is_new_session = False
            current = storage.get_item(CURRENT_PAGE_KEY)
            if current is not None and current != path:
                storage.set_item(PREVIOUS_PAGE_KEY, current)
        storage.set_item(CURRENT_PAGE_KEY, path)

        # Read once at construction; from here on the next session is "returning".
        self.local_storage.set_item(RETURNING_USER_KEY, "true")

    @property
    def page_views(self) -> int:
        raw = self.session_storage.get_item(PAGE_VIEWS_KEY)
        try:
            return int(raw) if raw is not None else 0
        except ValueError:
            return 0

    @property
    def session_start(self) -> int | None:
        raw = self.session_storage.get_item(SESSION_START_KEY)
        try:
            return int(raw) if raw is not None else None
        except ValueError:
            return None

    # Page-scoped timing

    def time_on_page(self) -> int:
        """Milliseconds since page entry; the first call on a page starts the clock."""
        if self._page_entry_time is None:
            self._page_entry_time = self.clock()
            return 0
        return max(0, self.clock() - self._page_entry_time)

    def reset_page(self) -> None:
        self._page_entry_time = self.clock()

    def session_info(self) -> SessionInfo:
        start = self.session_start
        now = self.clock()
        return SessionInfo(
            session_id=self.session_id,
            session_start_time=start,
            page_views_in_session=self.page_views,
            session_duration=max(0, now - start) if start is not None else 0,
            is_new_session=self.is_new_session,
            is_returning_user=self.is_returning_user,
            entry_page=self.session_storage.get_item(ENTRY_PAGE_KEY),
            previous_page=self.session_storage.get_item(PREVIOUS_PAGE_KEY),
        )
