"""DuckDB warehouse for received telemetry.

Raw events land in an append-only table keyed by the client-generated
event id, so a batch that is delivered twice (a retry after a lost
response) is only counted once.
"""

import json
from pathlib import Path

import duckdb

DEFAULT_DB_PATH = Path("data/analytics.duckdb")

# Schema for the raw events table
_CREATE_EVENTS_TABLE = """
CREATE TABLE IF NOT EXISTS raw_events (
    event_id        VARCHAR PRIMARY KEY,
    event_name      VARCHAR NOT NULL,
    category        VARCHAR NOT NULL,
    action          VARCHAR NOT NULL,
    label           VARCHAR,
    value           DOUBLE,
    timestamp       BIGINT NOT NULL,
    session_id      VARCHAR NOT NULL,
    user_id         VARCHAR,
    custom_data     JSON,
    page_url        VARCHAR,
    page_referrer   VARCHAR,
    scroll_depth    INTEGER,
    time_on_page    BIGINT,
    user_agent      VARCHAR,
    ip_address      VARCHAR,
    language        VARCHAR,
    time_zone       VARCHAR,
    device_info     JSON,
    session_info    JSON,
    ecommerce       JSON,
    ingested_at     TIMESTAMP WITH TIME ZONE DEFAULT now()
);
"""

_COLUMNS = [
    "event_id",
    "event_name",
    "category",
    "action",
    "label",
    "value",
    "timestamp",
    "session_id",
    "user_id",
    "custom_data",
    "page_url",
    "page_referrer",
    "scroll_depth",
    "time_on_page",
    "user_agent",
    "ip_address",
    "language",
    "time_zone",
    "device_info",
    "session_info",
    "ecommerce",
]

_JSON_COLUMNS = {"custom_data", "device_info", "session_info", "ecommerce"}

_INSERT_EVENT = f"""
INSERT INTO raw_events ({", ".join(_COLUMNS)})
VALUES ({", ".join("?" for _ in _COLUMNS)})
"""


def get_connection(db_path: Path | str = DEFAULT_DB_PATH) -> duckdb.DuckDBPyConnection:
    """Open a DuckDB connection, creating the database file if needed.

    Pass \":memory:\" for an in-memory database (useful for testing).
    """
    if str(db_path) == ":memory:":
        return duckdb.connect(":memory:")
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(db_path))


def init_db(conn: duckdb.DuckDBPyConnection) -> None:
    """Create the raw_events table if it doesn't exist."""
    conn.execute(_CREATE_EVENTS_TABLE)


def insert_events(
    conn: duckdb.DuckDBPyConnection, events: list[dict]
) -> tuple[int, int]:
    """Insert flattened event rows, skipping duplicates.

    Returns (inserted_count, duplicate_count). Rows are dicts keyed by
    column name; JSON columns may hold any JSON-serializable value.
    """
    if not events:
        return 0, 0

    inserted = 0
    duplicates = 0

    for event in events:
        params = []
        for column in _COLUMNS:
            value = event.get(column)
            if column in _JSON_COLUMNS and value is not None:
                value = json.dumps(value)
            params.append(value)
        try:
            conn.execute(_INSERT_EVENT, params)
            inserted += 1
        except duckdb.ConstraintException:
            duplicates += 1

    return inserted, duplicates


def count_events(conn: duckdb.DuckDBPyConnection) -> int:
    """Return the total number of events in the warehouse."""
    result = conn.execute("SELECT COUNT(*) FROM raw_events").fetchone()
    return result[0]
