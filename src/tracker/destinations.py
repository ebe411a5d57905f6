"""Delivery destinations.

The custom collector endpoint is the system of record; its failures feed the
retry queue. Third-party sinks each translate events into their own
vocabulary and are best effort only.
"""

import json
from typing import Callable

from pydantic import ValidationError

from src.tracker.schemas import AnalyticsEvent, BatchPayload
from src.tracker.transport import DeliveryError, ReliableSend, StandardSend

PIXEL_EVENTS = {
    "view_item": "ViewContent",
    "add_to_cart": "AddToCart",
    "begin_checkout": "InitiateCheckout",
    "purchase": "Purchase",
    "search": "Search",
}


def map_to_pixel_event(action: str) -> str:
    return PIXEL_EVENTS.get(action, "CustomEvent")


class CustomEndpointDestination:
    """The primary collector.

    ``build_payload`` wraps a batch with page/device/session/user context at
    send time.
    """

    name = "custom_endpoint"

    def __init__(
        self,
        endpoint: str,
        build_payload: Callable[[list[AnalyticsEvent]], BatchPayload],
        standard_send: StandardSend,
        reliable_send: ReliableSend | None = None,
    ):
        self.endpoint = endpoint
        self.build_payload = build_payload
        self.standard_send = standard_send
        self.reliable_send = reliable_send

    def serialize(self, events: list[AnalyticsEvent]) -> bytes:
        try:
            return self.build_payload(events).to_json().encode("utf-8")
        except (ValidationError, ValueError, TypeError) as e:
            raise DeliveryError(f"Could not serialize batch of {len(events)} events: {e}") from e

    def send_reliable(self, events: list[AnalyticsEvent]) -> bool:
        """Hand the batch to the reliable transport; False if it was refused."""
        if self.reliable_send is None:
            return False
        return self.reliable_send(self.endpoint, self.serialize(events))

    async def send(self, events: list[AnalyticsEvent]) -> None:
        await self.standard_send(self.endpoint, self.serialize(events))


class GoogleAnalyticsDestination:
    """Measurement-protocol style sink: one ``{name, params}`` entry per event."""

    name = "google_analytics"

    def __init__(self, tracking_id: str, endpoint: str, client_id: str, standard_send: StandardSend):
        self.tracking_id = tracking_id
        self.endpoint = endpoint
        self.client_id = client_id
        self.standard_send = standard_send

    @staticmethod
    def to_ga_event(event: AnalyticsEvent) -> dict:
        params = {
            "event_category": event.category,
            "event_label": event.label,
            "value": event.value,
            "custom_parameters": event.custom_data,
        }
        return {"name": event.action, "params": {k: v for k, v in params.items() if v is not None}}

    async def send(self, events: list[AnalyticsEvent]) -> None:
        body = {
            "client_id": self.client_id,
            "events": [self.to_ga_event(e) for e in events],
        }
        url = f"{self.endpoint}?measurement_id={self.tracking_id}"
        await self.standard_send(url, json.dumps(body).encode("utf-8"))


class PixelDestination:
    """Conversion-pixel sink; actions map onto the pixel's standard events."""

    name = "pixel"

    def __init__(self, pixel_id: str, endpoint: str, standard_send: StandardSend):
        self.pixel_id = pixel_id
        self.endpoint = endpoint
        self.standard_send = standard_send

    @staticmethod
    def to_pixel_event(event: AnalyticsEvent) -> dict:
        data = {"event_name": map_to_pixel_event(event.action), "event_time": event.timestamp // 1000}
        custom = dict(event.custom_data)
        if event.value is not None:
            custom["value"] = event.value
        currency = getattr(event, "currency", None)
        if currency:
            custom["currency"] = currency
        if custom:
            data["custom_data"] = custom
        return data

    async def send(self, events: list[AnalyticsEvent]) -> None:
        body = {"pixel_id": self.pixel_id, "data": [self.to_pixel_event(e) for e in events]}
        await self.standard_send(self.endpoint, json.dumps(body).encode("utf-8"))
