"""Tests for capture-time enrichment."""

import pytest

from conftest import CHROME_DESKTOP_UA

from src.tracker.enricher import (
    EventEnricher,
    compute_scroll_depth,
    parse_user_agent,
    snapshot_performance,
)
from src.tracker.host import NavigationTiming, ResourceTiming
from src.tracker.session import SessionContext

IPHONE_SAFARI = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1"
)
IPAD_SAFARI = (
    "Mozilla/5.0 (iPad; CPU OS 16_6 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1"
)
ANDROID_TABLET = (
    "Mozilla/5.0 (Linux; Android 13; SM-X700) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36"
)
ANDROID_PHONE_SAMSUNG = (
    "Mozilla/5.0 (Linux; Android 14; SM-S918B) AppleWebKit/537.36 (KHTML, like Gecko) "
    "SamsungBrowser/23.0 Chrome/115.0.0.0 Mobile Safari/537.36"
)
MAC_FIREFOX = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.1; rv:120.0) Gecko/20100101 Firefox/120.0"
WINDOWS_EDGE = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36 Edg/120.0.2210.61"
)
LINUX_OPERA = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/119.0.0.0 Safari/537.36 OPR/105.0.0.0"
)


class TestParseUserAgent:
    @pytest.mark.parametrize(
        "ua, device, os_name, browser, version",
        [
            (CHROME_DESKTOP_UA, "desktop", "Windows", "Chrome", "120"),
            (IPHONE_SAFARI, "mobile", "iOS", "Safari", "17"),
            (IPAD_SAFARI, "tablet", "iOS", "Safari", "16"),
            (ANDROID_TABLET, "tablet", "Android", "Chrome", "119"),
            (ANDROID_PHONE_SAMSUNG, "mobile", "Android", "Samsung Internet", "23"),
            (MAC_FIREFOX, "desktop", "macOS", "Firefox", "120"),
            (WINDOWS_EDGE, "desktop", "Windows", "Edge", "120"),
            (LINUX_OPERA, "desktop", "Linux", "Opera", "105"),
        ],
    )
    def test_known_agents(self, ua, device, os_name, browser, version):
        info = parse_user_agent(ua)
        assert info.device_type == device
        assert info.operating_system == os_name
        assert info.browser == browser
        assert info.browser_version == version

    def test_unknown_agent_falls_back(self):
        info = parse_user_agent("curl/8.4.0")
        assert info.operating_system == "Unknown"
        assert info.browser == "Unknown"
        assert info.browser_version == "Unknown"

    def test_empty_agent(self):
        info = parse_user_agent("")
        assert info.device_type == "Unknown"
        assert not (info.is_mobile or info.is_tablet or info.is_desktop)

    def test_flags_follow_device_type(self):
        info = parse_user_agent(IPHONE_SAFARI)
        assert info.is_mobile and not info.is_tablet and not info.is_desktop

    def test_page_dimensions(self, host):
        info = parse_user_agent(CHROME_DESKTOP_UA, host.page)
        assert info.viewport_width == 1280
        assert info.viewport_height == 100


class TestScrollDepth:
    @pytest.mark.parametrize(
        "top, expected",
        [(0, 0), (240, 24), (250, 25), (260, 26), (500, 50), (990, 99), (1000, 100), (1500, 100)],
    )
    def test_depth(self, top, expected):
        assert compute_scroll_depth(top, 1100, 100) == expected

    def test_half_rounds_up(self):
        assert compute_scroll_depth(125, 1100, 100) == 13

    def test_unscrollable_page(self):
        assert compute_scroll_depth(0, 800, 800) == 0
        assert compute_scroll_depth(10, 600, 800) == 0


class TestPerformance:
    def test_missing_timings(self):
        assert snapshot_performance(None) is None

    def test_snapshot(self):
        timing = NavigationTiming(
            load_event_end=1250.4,
            dom_content_loaded_event_end=890,
            first_contentful_paint=650,
            resources=[ResourceTiming("app.js", 2000), ResourceTiming("logo.png", 500)],
        )
        snap = snapshot_performance(timing)
        assert snap.page_load_time == 1250
        assert snap.dom_load_time == 890
        assert snap.first_contentful_paint == 650
        assert snap.largest_contentful_paint is None
        assert snap.resource_count == 2
        assert snap.total_resource_size == 2500


class TestEventEnricher:
    @pytest.fixture
    def enricher(self, host, clock):
        session = SessionContext(host.session_storage, host.local_storage, clock)
        return EventEnricher(host, session)

    def test_enrich_stamps_context(self, enricher, host, clock):
        host.page.scroll_top = 500
        event = enricher.enrich(name="click", category="user_interaction", action="click")
        assert event.timestamp == clock.now
        assert event.session_id == enricher.session.session_id
        assert event.page_referrer == host.page.referrer
        assert event.scroll_depth == 50
        assert event.time_on_page == 0

    def test_time_on_page_counts_from_first_event(self, enricher, clock):
        enricher.enrich(name="a", category="c", action="x")
        clock.advance(2500)
        assert enricher.enrich(name="b", category="c", action="x").time_on_page == 2500

    def test_performance_captured_once_per_page(self, enricher, host):
        host.performance = NavigationTiming(load_event_end=1000)
        first = enricher.enrich(name="a", category="c", action="x")
        host.performance = NavigationTiming(load_event_end=9999)
        second = enricher.enrich(name="b", category="c", action="x")
        assert first.performance_data.page_load_time == 1000
        assert second.performance_data == first.performance_data

        enricher.reset_page()
        third = enricher.enrich(name="c", category="c", action="x")
        assert third.performance_data.page_load_time == 9999

    def test_no_performance_api(self, enricher, host):
        host.performance = None
        assert enricher.enrich(name="a", category="c", action="x").performance_data is None

    def test_explicit_fields_win(self, enricher):
        event = enricher.enrich(name="a", category="c", action="x", page_referrer="/override")
        assert event.page_referrer == "/override"
