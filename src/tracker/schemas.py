"""Event schema definitions for the telemetry pipeline.

Every tracked occurrence is an ``AnalyticsEvent``: a name, a category/action
classification, an optional label/value pair, and an open ``custom_data``
bag, stamped with capture time and session at creation. Events are frozen;
enrichment happens before construction, never after.

Field names are snake_case in Python and PascalCase on the wire, which is
what the collector contract expects.
"""

from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, JsonValue, SerializeAsAny, field_validator
from pydantic.alias_generators import to_pascal


class EventCategory(str, Enum):
    ECOMMERCE = "ecommerce"
    USER_INTERACTION = "user_interaction"
    NAVIGATION = "navigation"
    ERROR = "error"
    PERFORMANCE = "performance"
    FORM = "form"
    ENGAGEMENT = "engagement"


class EventAction(str, Enum):
    # E-commerce
    VIEW_ITEM = "view_item"
    ADD_TO_CART = "add_to_cart"
    REMOVE_FROM_CART = "remove_from_cart"
    BEGIN_CHECKOUT = "begin_checkout"
    PURCHASE = "purchase"
    VIEW_CART = "view_cart"

    # Navigation
    PAGE_VIEW = "page_view"
    LINK_CLICK = "link_click"
    SCROLL = "scroll"

    # User interaction
    CLICK = "click"
    FORM_SUBMIT = "form_submit"
    SEARCH = "search"
    SHARE = "share"

    # Engagement
    VIDEO_PLAY = "video_play"
    FILE_DOWNLOAD = "file_download"
    CONTACT_SUBMIT = "contact_submit"

    # Errors
    ERROR_BOUNDARY = "error_boundary"
    API_ERROR = "api_error"


class WireModel(BaseModel):
    """Base for everything that travels in the outbound payload."""

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)


class PerformanceSnapshot(WireModel):
    """Page performance timings, captured once per page."""

    model_config = ConfigDict(frozen=True)

    page_load_time: int | None = None
    dom_load_time: int | None = None
    first_contentful_paint: int | None = None
    largest_contentful_paint: int | None = None
    first_input_delay: int | None = None
    cumulative_layout_shift: float | None = None
    time_to_interactive: int | None = None
    resource_count: int | None = None
    total_resource_size: int | None = None


class AnalyticsEvent(WireModel):
    """Core event envelope.

    ``category`` and ``action`` are plain strings so callers can go beyond
    ``EventCategory``/``EventAction`` without a schema change.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: uuid4().hex)
    name: str = Field(alias="Event")
    category: str
    action: str
    label: str | None = None
    value: float | None = None
    timestamp: int
    session_id: str
    user_id: str | None = None
    custom_data: dict[str, JsonValue] = Field(default_factory=dict)

    # Capture-time context
    page_referrer: str | None = None
    scroll_depth: int = Field(default=0, ge=0, le=100)
    time_on_page: int = Field(default=0, ge=0)
    interaction_target: str | None = None
    event_source: str | None = None
    performance_data: PerformanceSnapshot | None = None

    @field_validator("name", "category", "action", "session_id")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("category", "action", mode="before")
    @classmethod
    def enum_to_value(cls, v):
        if isinstance(v, Enum):
            return v.value
        return v


class EcommerceItem(WireModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    item_name: str
    category: str
    quantity: int = Field(ge=0)
    price: float
    brand: str | None = None
    variant: str | None = None


class EcommerceEvent(AnalyticsEvent):
    """An event carrying a commerce transaction; ``value`` is the order total."""

    transaction_id: str | None = None
    currency: str = "INR"
    items: list[EcommerceItem] = Field(default_factory=list)


class PageViewEvent(WireModel):
    """A page view as the application reports it.

    Not queued as-is: every page view is also emitted as a generic
    ``page_view`` AnalyticsEvent.
    """

    model_config = ConfigDict(frozen=True)

    page: str
    title: str
    referrer: str | None = None
    timestamp: int
    session_id: str
    user_id: str | None = None
    custom_data: dict[str, JsonValue] = Field(default_factory=dict)


class DeviceInfo(WireModel):
    device_type: str = "Unknown"
    operating_system: str = "Unknown"
    browser: str = "Unknown"
    browser_version: str = "Unknown"
    screen_width: int | None = None
    screen_height: int | None = None
    viewport_width: int | None = None
    viewport_height: int | None = None
    is_mobile: bool = False
    is_tablet: bool = False
    is_desktop: bool = False


class SessionInfo(WireModel):
    session_id: str
    session_start_time: int | None = None
    page_views_in_session: int = 0
    session_duration: int = 0
    is_new_session: bool = True
    is_returning_user: bool = False
    entry_page: str | None = None
    previous_page: str | None = None


class UserProfile(WireModel):
    user_id: str | None = None
    user_name: str | None = None
    email: str | None = None
    user_type: str = "guest"
    total_orders: int | None = None
    total_spent: float | None = None
    preferred_language: str | None = None
    customer_segment: str | None = None
    preferences: list[str] = Field(default_factory=list)


class BatchPayload(WireModel):
    """The JSON document POSTed to the collector for one batch."""

    events: list[SerializeAsAny[AnalyticsEvent]] = Field(..., min_length=1)
    timestamp: int
    user_agent: str | None = None
    url: str | None = None
    language: str | None = None
    time_zone: str | None = None
    device_info: DeviceInfo | None = None
    session_info: SessionInfo | None = None
    user_profile: UserProfile | None = None

    # Filled in by the collector, never by the client.
    ip_address: str | None = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)
