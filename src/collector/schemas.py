"""Request/response schemas for the analytics collector.

The collector receives the tracker's ``BatchPayload`` as PascalCase JSON.
Incoming events are read into one flat model so generic and e-commerce
events share a single table row shape.
"""

from pydantic import BaseModel, Field

from src.tracker.schemas import AnalyticsEvent, BatchPayload, EcommerceItem


class TrackedEvent(AnalyticsEvent):
    """An event as received: commerce fields are present only when sent."""

    transaction_id: str | None = None
    currency: str | None = None
    items: list[EcommerceItem] | None = None


class TrackPayload(BatchPayload):
    events: list[TrackedEvent] = Field(..., min_length=1, max_length=1000)


class IngestResponse(BaseModel):
    """Response returned after event ingestion."""

    accepted: int
    duplicate_count: int = 0
    errors: list[str] = Field(default_factory=list)
