"""Ready-made tracking calls for common storefront moments.

Thin wrappers over ``BeaconTracker`` so product, cart, checkout, search and
form code don't each rebuild event names and item lists.
"""

import time
from typing import Callable

from loguru import logger
from pydantic import ValidationError

from src.tracker.schemas import EcommerceItem, EventAction, EventCategory
from src.tracker.tracker import BeaconTracker

DEFAULT_CURRENCY = "INR"
DEFAULT_BRAND = "Agro Nexis"


def _item(product: dict, quantity: int | None = None) -> dict:
    # Missing keys surface as a validation failure inside the tracker, not here.
    return {
        "item_id": product.get("id"),
        "item_name": product.get("name"),
        "category": product.get("category"),
        "quantity": quantity if quantity is not None else product.get("quantity", 1),
        "price": product.get("price"),
        "brand": product.get("brand") or DEFAULT_BRAND,
        "variant": product.get("variant"),
    }


def _cart_line(product: dict) -> EcommerceItem | None:
    """Validated cart line; the event value is priced from it, not the raw dict."""
    try:
        return EcommerceItem.model_validate(_item(product))
    except ValidationError as e:
        logger.warning(f"Dropping cart event for product {product.get('id')!r}: {e}")
        return None


# E-commerce

def track_product_view(tracker: BeaconTracker, product: dict):
    return tracker.track_ecommerce(
        name="view_item",
        action=EventAction.VIEW_ITEM,
        currency=DEFAULT_CURRENCY,
        value=product.get("price"),
        items=[_item(product, quantity=1)],
    )


def track_add_to_cart(tracker: BeaconTracker, product: dict):
    line = _cart_line(product)
    if line is None:
        return None
    return tracker.track_ecommerce(
        name="add_to_cart",
        action=EventAction.ADD_TO_CART,
        currency=DEFAULT_CURRENCY,
        value=line.price * line.quantity,
        items=[line],
    )


def track_remove_from_cart(tracker: BeaconTracker, product: dict):
    line = _cart_line(product)
    if line is None:
        return None
    return tracker.track_ecommerce(
        name="remove_from_cart",
        action=EventAction.REMOVE_FROM_CART,
        currency=DEFAULT_CURRENCY,
        value=line.price * line.quantity,
        items=[line],
    )


def track_begin_checkout(tracker: BeaconTracker, total: float, items: list[dict]):
    return tracker.track_ecommerce(
        name="begin_checkout",
        action=EventAction.BEGIN_CHECKOUT,
        currency=DEFAULT_CURRENCY,
        value=total,
        items=[_item(i) for i in items],
    )


def track_purchase(tracker: BeaconTracker, transaction_id: str, total: float, items: list[dict]):
    return tracker.track_ecommerce(
        name="purchase",
        action=EventAction.PURCHASE,
        transaction_id=transaction_id,
        currency=DEFAULT_CURRENCY,
        value=total,
        items=[_item(i) for i in items],
    )


def track_view_cart(tracker: BeaconTracker, total: float, item_count: int):
    return tracker.track_ecommerce(
        name="view_cart",
        action=EventAction.VIEW_CART,
        currency=DEFAULT_CURRENCY,
        value=total,
        custom_data={"item_count": item_count},
    )


# Navigation and forms

def track_navigation(tracker: BeaconTracker, link_name: str, destination: str):
    return tracker.track_interaction(f"{link_name} -> {destination}", EventAction.LINK_CLICK.value)


def track_form_start(tracker: BeaconTracker, form_name: str):
    return tracker.track_event(
        name="form_start", category=EventCategory.FORM, action="form_start", label=form_name
    )


def track_field_interaction(tracker: BeaconTracker, form_name: str, field_name: str):
    return tracker.track_event(
        name="form_field_interaction",
        category=EventCategory.FORM,
        action="field_focus",
        label=f"{form_name} - {field_name}",
    )


# Search

def track_search(tracker: BeaconTracker, query: str, results_count: int | None = None):
    return tracker.track_event(
        name="search",
        category=EventCategory.USER_INTERACTION,
        action=EventAction.SEARCH,
        label=query,
        value=results_count,
        custom_data={"search_term": query, "results_count": results_count},
    )


def track_search_result_click(tracker: BeaconTracker, query: str, result_id: str, position: int):
    return tracker.track_event(
        name="search_result_click",
        category=EventCategory.USER_INTERACTION,
        action="search_result_click",
        label=f"{query} -> {result_id}",
        value=position,
        custom_data={"search_term": query, "result_id": result_id, "position": position},
    )


# Errors

def track_api_error(tracker: BeaconTracker, endpoint: str, error_code: int, error_message: str):
    return tracker.track_event(
        name="api_error",
        category=EventCategory.ERROR,
        action=EventAction.API_ERROR,
        label=f"{endpoint} - {error_code}",
        value=error_code,
        custom_data={"endpoint": endpoint, "error_code": error_code, "error_message": error_message},
    )


# Engagement

def start_time_on_page(tracker: BeaconTracker, clock: Callable[[], float] = time.monotonic) -> Callable[[], None]:
    """Start a timer; calling the returned function emits the seconds spent."""
    started = clock()

    def stop():
        return tracker.track_event(
            name="time_on_page",
            category=EventCategory.ENGAGEMENT,
            action="time_spent",
            label=tracker.host.page.path,
            value=round(clock() - started),
        )

    return stop


def track_share(tracker: BeaconTracker, platform: str, content: str):
    return tracker.track_event(
        name="share",
        category=EventCategory.ENGAGEMENT,
        action=EventAction.SHARE,
        label=f"{platform} - {content}",
        custom_data={"platform": platform, "content": content},
    )


def track_download(tracker: BeaconTracker, file_name: str, file_type: str):
    return tracker.track_event(
        name="file_download",
        category=EventCategory.ENGAGEMENT,
        action=EventAction.FILE_DOWNLOAD,
        label=file_name,
        custom_data={"file_name": file_name, "file_type": file_type},
    )
