"""Capture-time enrichment.

Turns a bare capture request into a fully stamped event: session, user,
referrer, scroll depth, time on page and a per-page performance snapshot.
Nothing here raises; a missing capability leaves its fields empty.
"""

import math

from src.tracker.host import NavigationTiming, PageHost
from src.tracker.schemas import AnalyticsEvent, DeviceInfo, EcommerceEvent, PerformanceSnapshot
from src.tracker.session import SessionContext

UNKNOWN = "Unknown"

# Ordered (token, name) checks; first match wins.
_OS_PATTERNS = [
    ("Windows", "Windows"),
    ("iPhone", "iOS"),
    ("iPad", "iOS"),
    ("Android", "Android"),
    ("Mac OS X", "macOS"),
    ("Macintosh", "macOS"),
    ("CrOS", "ChromeOS"),
    ("Linux", "Linux"),
]

# (browser name, version tokens); Chromium derivatives come before Chrome,
# Chrome before Safari since Chrome also advertises "Safari/".
_BROWSER_PATTERNS = [
    ("Edge", ["Edg/", "EdgA/", "EdgiOS/"]),
    ("Opera", ["OPR/"]),
    ("Samsung Internet", ["SamsungBrowser/"]),
    ("Chrome", ["Chrome/", "CriOS/"]),
    ("Firefox", ["Firefox/", "FxiOS/"]),
    ("Safari", ["Version/"]),
]


def _major_version(user_agent: str, token: str) -> str:
    start = user_agent.index(token) + len(token)
    digits = ""
    for ch in user_agent[start:]:
        if not ch.isdigit():
            break
        digits += ch
    return digits or UNKNOWN


def detect_device_type(user_agent: str) -> str:
    if "iPad" in user_agent or "Tablet" in user_agent:
        return "tablet"
    if "Android" in user_agent and "Mobile" not in user_agent:
        return "tablet"
    if "Mobi" in user_agent or "iPhone" in user_agent or "Android" in user_agent:
        return "mobile"
    if not user_agent:
        return UNKNOWN
    return "desktop"


def detect_os(user_agent: str) -> str:
    for token, name in _OS_PATTERNS:
        if token in user_agent:
            return name
    return UNKNOWN


def detect_browser(user_agent: str) -> tuple[str, str]:
    for name, tokens in _BROWSER_PATTERNS:
        for token in tokens:
            if token in user_agent:
                if name == "Safari" and "Safari/" not in user_agent:
                    continue
                return name, _major_version(user_agent, token)
    return UNKNOWN, UNKNOWN


def parse_user_agent(user_agent: str, page=None) -> DeviceInfo:
    """Classify device, OS and browser from a user-agent string.

    ``page`` (a PageState) contributes screen and viewport sizes when given.
    """
    device_type = detect_device_type(user_agent)
    browser, version = detect_browser(user_agent)
    info = DeviceInfo(
        device_type=device_type,
        operating_system=detect_os(user_agent),
        browser=browser,
        browser_version=version,
        is_mobile=device_type == "mobile",
        is_tablet=device_type == "tablet",
        is_desktop=device_type == "desktop",
    )
    if page is not None:
        info.screen_width = page.screen_width
        info.screen_height = page.screen_height
        info.viewport_width = page.viewport_width
        info.viewport_height = int(page.viewport_height) if page.viewport_height else None
    return info


def compute_scroll_depth(scroll_top: float, scroll_height: float, viewport_height: float) -> int:
    """Percentage of the scrollable distance covered, 0 for unscrollable pages.

    Halves round up, as the browser's Math.round does.
    """
    scrollable = scroll_height - viewport_height
    if scrollable <= 0:
        return 0
    depth = math.floor(scroll_top / scrollable * 100 + 0.5)
    return max(0, min(100, depth))


def _ms(value: float | None) -> int | None:
    return None if value is None else int(round(value))


def snapshot_performance(timing: NavigationTiming | None) -> PerformanceSnapshot | None:
    if timing is None:
        return None
    return PerformanceSnapshot(
        page_load_time=_ms(timing.load_event_end),
        dom_load_time=_ms(timing.dom_content_loaded_event_end),
        first_contentful_paint=_ms(timing.first_contentful_paint),
        largest_contentful_paint=_ms(timing.largest_contentful_paint),
        first_input_delay=_ms(timing.first_input_delay),
        cumulative_layout_shift=timing.cumulative_layout_shift,
        time_to_interactive=_ms(timing.time_to_interactive),
        resource_count=len(timing.resources),
        total_resource_size=sum(r.transfer_size for r in timing.resources),
    )


class EventEnricher:
    def __init__(self, host: PageHost, session: SessionContext):
        self.host = host
        self.session = session
        self._performance: PerformanceSnapshot | None = None
        self._performance_captured = False

    def reset_page(self) -> None:
        """Forget page-scoped state after a navigation."""
        self._performance = None
        self._performance_captured = False
        self.session.reset_page()

    def performance(self) -> PerformanceSnapshot | None:
        if not self._performance_captured:
            self._performance = snapshot_performance(self.host.performance)
            self._performance_captured = True
        return self._performance

    def scroll_depth(self) -> int:
        page = self.host.page
        return compute_scroll_depth(page.scroll_top, page.scroll_height, page.viewport_height)

    def device_info(self) -> DeviceInfo:
        return parse_user_agent(self.host.user_agent, self.host.page)

    def _context(self) -> dict:
        return {
            "timestamp": self.session.clock(),
            "session_id": self.session.session_id,
            "user_id": self.session.user_id,
            "page_referrer": self.host.page.referrer or None,
            "scroll_depth": self.scroll_depth(),
            "time_on_page": self.session.time_on_page(),
            "performance_data": self.performance(),
        }

    def enrich(self, **fields) -> AnalyticsEvent:
        """Build an AnalyticsEvent; raises pydantic's ValidationError on bad input.

        Explicit ``fields`` win over the computed context (e.g. a referrer
        override on a page view).
        """
        return AnalyticsEvent(**{**self._context(), **fields})

    def enrich_ecommerce(self, **fields) -> EcommerceEvent:
        return EcommerceEvent(**{**self._context(), **fields})
