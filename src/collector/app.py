"""FastAPI analytics collector.

The HTTP endpoint the tracker delivers batches to. Validates the payload,
stamps it with the client IP, flattens events into warehouse rows and
persists them to DuckDB.
"""

import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from loguru import logger

from src.collector.schemas import IngestResponse, TrackPayload
from src.warehouse.db import get_connection, init_db, insert_events

DB_PATH = Path(os.environ.get("ANALYTICS_DB_PATH", "data/analytics.duckdb"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the warehouse on startup."""
    conn = get_connection(DB_PATH)
    init_db(conn)
    app.state.db = conn
    yield
    conn.close()


app = FastAPI(
    title="Analytics Event Collector",
    description="Receives storefront telemetry batches and stores them in the warehouse.",
    version="0.3.0",
    lifespan=lifespan,
)


def client_ip(request: Request) -> str | None:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


def payload_to_rows(payload: TrackPayload) -> list[dict]:
    device_info = payload.device_info.model_dump(mode="json") if payload.device_info else None
    session_info = payload.session_info.model_dump(mode="json") if payload.session_info else None

    rows = []
    for event in payload.events:
        ecommerce = None
        if event.transaction_id or event.currency or event.items:
            ecommerce = {
                "transaction_id": event.transaction_id,
                "currency": event.currency,
                "items": [i.model_dump(mode="json") for i in event.items or []],
            }
        rows.append({
            "event_id": event.event_id,
            "event_name": event.name,
            "category": event.category,
            "action": event.action,
            "label": event.label,
            "value": event.value,
            "timestamp": event.timestamp,
            "session_id": event.session_id,
            "user_id": event.user_id,
            "custom_data": event.custom_data,
            "page_url": payload.url,
            "page_referrer": event.page_referrer,
            "scroll_depth": event.scroll_depth,
            "time_on_page": event.time_on_page,
            "user_agent": payload.user_agent,
            "ip_address": payload.ip_address,
            "language": payload.language,
            "time_zone": payload.time_zone,
            "device_info": device_info,
            "session_info": session_info,
            "ecommerce": ecommerce,
        })
    return rows


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/analytics/track", response_model=IngestResponse)
def track(payload: TrackPayload, request: Request) -> IngestResponse:
    """Accept one batch from the tracker and persist it."""
    if payload.ip_address is None:
        payload = payload.model_copy(update={"ip_address": client_ip(request)})
    rows = payload_to_rows(payload)
    inserted, duplicates = insert_events(app.state.db, rows)
    logger.info(f"Ingested {inserted} events ({duplicates} duplicates) for session {rows[0]['session_id']}")
    return IngestResponse(accepted=inserted, duplicate_count=duplicates)
