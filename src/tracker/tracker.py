"""Capture API for the storefront.

``BeaconTracker`` is owned by the application's composition root: build it
once, ``await start()`` inside the running event loop, hand it to whatever
needs to track, and ``await shutdown()`` on exit. Every ``track_*`` call is
synchronous, never raises, and is ignored until the tracker has started.

    tracker = BeaconTracker(TrackerSettings(is_enabled=True, custom_endpoint=url), host)
    await tracker.start()
    tracker.track_page_view(page="/products", title="Products")
"""

import asyncio
import traceback
from typing import Callable, Coroutine

from loguru import logger
from pydantic import JsonValue, ValidationError

from src.tracker.config import TrackerSettings
from src.tracker.destinations import CustomEndpointDestination, GoogleAnalyticsDestination, PixelDestination
from src.tracker.dispatcher import Dispatcher
from src.tracker.enricher import EventEnricher
from src.tracker.host import PageHost
from src.tracker.lifecycle import LifecycleHooks
from src.tracker.queue import EventQueue, PeriodicFlusher
from src.tracker.retry import RetryQueue
from src.tracker.schemas import (
    AnalyticsEvent,
    BatchPayload,
    EcommerceItem,
    EventAction,
    EventCategory,
    PageViewEvent,
    UserProfile,
)
from src.tracker.session import SessionContext, now_ms
from src.tracker.transport import BeaconSend, DeliveryError, KeepaliveSend, ReliableSend, StandardSend

CustomData = dict[str, JsonValue]


class BeaconTracker:
    def __init__(
        self,
        settings: TrackerSettings | None = None,
        host: PageHost | None = None,
        standard_send: StandardSend | None = None,
        reliable_send: ReliableSend | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.settings = settings or TrackerSettings()
        self.host = host or PageHost()
        self.session = SessionContext(self.host.session_storage, self.host.local_storage, clock)
        self.enricher = EventEnricher(self.host, self.session)
        self.queue = EventQueue(self.settings.batch_size)
        self.user_profile: UserProfile | None = None

        self._owns_transport = standard_send is None
        self.standard_send = standard_send or KeepaliveSend(timeout=self.settings.request_timeout)
        self.reliable_send = reliable_send or BeaconSend()

        self.dispatcher = Dispatcher(self._primary_destination(), self._secondary_destinations())
        self.retry = RetryQueue(self.dispatcher.send_primary, self.settings.retry_delay, self._spawn)
        self.flusher = PeriodicFlusher(self.queue, self.settings.flush_interval, self.flush)
        self.lifecycle = LifecycleHooks(
            self.host,
            flush=lambda reliable: self.flush(use_reliable_transport=reliable),
            scroll_depth=self.enricher.scroll_depth,
            on_milestone=self._track_scroll_milestone,
            on_navigate=self.enricher.reset_page,
            scroll_debounce=self.settings.scroll_debounce,
        )

        self.is_initialized = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: set[asyncio.Task] = set()

    def _primary_destination(self) -> CustomEndpointDestination | None:
        if not self.settings.custom_endpoint:
            return None
        return CustomEndpointDestination(
            self.settings.custom_endpoint,
            self.build_payload,
            self.standard_send,
            self.reliable_send if self.settings.enable_beacon_analytics else None,
        )

    def _secondary_destinations(self) -> list:
        destinations = []
        if self.settings.ga_tracking_id:
            destinations.append(
                GoogleAnalyticsDestination(
                    self.settings.ga_tracking_id,
                    self.settings.ga_endpoint,
                    self.session.session_id,
                    self.standard_send,
                )
            )
        if self.settings.facebook_pixel_id:
            destinations.append(
                PixelDestination(self.settings.facebook_pixel_id, self.settings.pixel_endpoint, self.standard_send)
            )
        return destinations

    # Lifecycle

    async def start(self) -> None:
        """Install listeners and the flush timer. No-op when disabled."""
        if self.is_initialized or not self.settings.is_enabled:
            return
        self._loop = asyncio.get_running_loop()
        self.lifecycle.install(self._loop)
        self.flusher.start()
        self.is_initialized = True
        if self.settings.enable_debug_mode:
            logger.debug(f"Tracker started for session {self.session.session_id}: {self.settings!r}")

    async def shutdown(self) -> None:
        """Stop the timer, drop listeners, send what is left and wait for it.

        The final flush goes over the reliable transport, which blocks the
        loop while the beacon POST runs.
        """
        if self.is_initialized:
            self.flusher.stop()
            self.lifecycle.remove()
            self.flush(use_reliable_transport=True)
            self.is_initialized = False
        await self.drain()
        if self._owns_transport:
            await self.standard_send.aclose()

    async def drain(self) -> None:
        """Wait for every in-flight delivery and scheduled retry."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine) -> None:
        if self._loop is None or self._loop.is_closed():
            logger.warning("No event loop available, dropping scheduled delivery")
            coro.close()
            return
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # Capture API

    def set_user_id(self, user_id: str) -> None:
        """Attach ``user_id`` to every event captured from now on."""
        self.session.set_user_id(user_id)

    def set_user_profile(self, profile: UserProfile) -> None:
        self.user_profile = profile
        if profile.user_id:
            self.session.set_user_id(profile.user_id)

    def track_event(
        self,
        name: str,
        category: EventCategory | str,
        action: EventAction | str,
        label: str | None = None,
        value: float | None = None,
        custom_data: CustomData | None = None,
        **context,
    ) -> AnalyticsEvent | None:
        """Capture a generic event. Returns a copy of the queued event, or None if dropped.

        ``context`` may carry ``interaction_target``, ``event_source`` or a
        ``page_referrer`` override.
        """
        if not self.is_initialized:
            return None
        try:
            event = self.enricher.enrich(
                name=name,
                category=category,
                action=action,
                label=label,
                value=value,
                custom_data=custom_data or {},
                **context,
            )
        except (ValidationError, TypeError) as e:
            logger.warning(f"Dropping invalid event {name!r}: {e}")
            return None
        self._enqueue(event)
        return event.model_copy(deep=True)

    def track_page_view(
        self,
        page: str,
        title: str,
        referrer: str | None = None,
        custom_data: CustomData | None = None,
    ) -> PageViewEvent | None:
        if not self.is_initialized:
            return None
        try:
            page_view = PageViewEvent(
                page=page,
                title=title,
                referrer=referrer or self.host.page.referrer or None,
                timestamp=self.session.clock(),
                session_id=self.session.session_id,
                user_id=self.session.user_id,
                custom_data=custom_data or {},
            )
        except ValidationError as e:
            logger.warning(f"Dropping invalid page view {page!r}: {e}")
            return None

        self.session.record_page_view(page)
        context = {"event_source": "page_view"}
        if referrer:
            context["page_referrer"] = referrer
        self.track_event(
            name="page_view",
            category=EventCategory.NAVIGATION,
            action=EventAction.PAGE_VIEW,
            label=page,
            custom_data=custom_data,
            **context,
        )
        return page_view

    def track_ecommerce(
        self,
        name: str,
        action: EventAction | str,
        transaction_id: str | None = None,
        currency: str = "INR",
        value: float | None = None,
        items: list[EcommerceItem | dict] | None = None,
        custom_data: CustomData | None = None,
    ) -> AnalyticsEvent | None:
        if not self.is_initialized:
            return None
        try:
            event = self.enricher.enrich_ecommerce(
                name=name,
                category=EventCategory.ECOMMERCE,
                action=action,
                transaction_id=transaction_id,
                currency=currency,
                value=value,
                items=items or [],
                custom_data=custom_data or {},
            )
        except (ValidationError, TypeError) as e:
            logger.warning(f"Dropping invalid e-commerce event {name!r}: {e}")
            return None
        self._enqueue(event)
        return event.model_copy(deep=True)

    def track_interaction(self, element: str, action: str, value: float | None = None) -> AnalyticsEvent | None:
        return self.track_event(
            name="user_interaction",
            category=EventCategory.USER_INTERACTION,
            action=action,
            label=element,
            value=value,
            interaction_target=element,
            event_source="user_interaction",
        )

    def track_form_submission(
        self, form_name: str, success: bool, error_message: str | None = None
    ) -> AnalyticsEvent | None:
        return self.track_event(
            name="form_submit",
            category=EventCategory.FORM,
            action="submit_success" if success else "submit_error",
            label=form_name,
            custom_data={"success": success, "error_message": error_message},
            event_source="form_submit",
        )

    def track_error(self, error: BaseException, context: str | None = None) -> AnalyticsEvent | None:
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return self.track_event(
            name="error",
            category=EventCategory.ERROR,
            action="error_occurred",
            label=str(error) or type(error).__name__,
            custom_data={"context": context, "stack": stack, "name": type(error).__name__},
        )

    def _track_scroll_milestone(self, depth: int) -> None:
        self.track_event(
            name="scroll",
            category=EventCategory.ENGAGEMENT,
            action=EventAction.SCROLL,
            label=f"{depth}%",
            value=depth,
            event_source="scroll_tracking",
        )

    # Queue and delivery

    def _enqueue(self, event: AnalyticsEvent) -> None:
        if self.settings.enable_debug_mode:
            logger.debug(f"Event tracked: {event.name} ({event.category}/{event.action})")
        if self.queue.add(event):
            self.flush()

    def flush(self, use_reliable_transport: bool = False) -> None:
        """Send the whole queue as one batch. An empty queue sends nothing.

        The queue is emptied before any I/O starts. With
        ``use_reliable_transport`` the primary collector is handed the batch
        synchronously, before this returns.
        """
        batch = self.queue.take_all()
        if not batch:
            return

        primary_done = False
        if use_reliable_transport and self.settings.enable_beacon_analytics:
            try:
                primary_done = self.dispatcher.send_reliable(batch)
            except DeliveryError as e:
                logger.warning(f"Reliable delivery of {len(batch)} events failed: {e}")
                self.retry.add(batch)
                primary_done = True

        self._spawn(self._deliver(batch, include_primary=not primary_done))
        if self.settings.enable_debug_mode:
            logger.debug(f"Flushed {len(batch)} events (reliable={use_reliable_transport})")

    async def _deliver(self, batch: list[AnalyticsEvent], include_primary: bool) -> None:
        if not await self.dispatcher.dispatch(batch, include_primary=include_primary):
            self.retry.add(batch)

    def build_payload(self, events: list[AnalyticsEvent]) -> BatchPayload:
        page = self.host.page
        return BatchPayload(
            events=events,
            timestamp=self.session.clock(),
            user_agent=self.host.user_agent or None,
            url=page.url or None,
            language=self.host.language,
            time_zone=self.host.time_zone,
            device_info=self.enricher.device_info(),
            session_info=self.session.session_info(),
            user_profile=self._profile_snapshot(),
        )

    def _profile_snapshot(self) -> UserProfile:
        user_id = self.session.user_id
        if self.user_profile is not None:
            if self.user_profile.user_id is None and user_id:
                return self.user_profile.model_copy(update={"user_id": user_id})
            return self.user_profile
        return UserProfile(user_id=user_id, user_type="registered" if user_id else "guest")
