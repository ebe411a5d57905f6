"""Tests for the DuckDB warehouse layer."""

import pytest

from src.warehouse.db import count_events, get_connection, init_db, insert_events


@pytest.fixture
def db():
    """In-memory DuckDB connection for testing."""
    conn = get_connection(db_path=":memory:")
    init_db(conn)
    yield conn
    conn.close()


def _make_row(event_id: str = "evt_1", session_id: str = "session_1") -> dict:
    return {
        "event_id": event_id,
        "event_name": "page_view",
        "category": "navigation",
        "action": "page_view",
        "label": "/home",
        "timestamp": 1_700_000_000_000,
        "session_id": session_id,
        "custom_data": {"page": "/home"},
    }


class TestInitDb:
    def test_creates_raw_events_table(self, db):
        tables = db.execute(
            "SELECT table_name FROM information_schema.tables WHERE table_name = 'raw_events'"
        ).fetchall()
        assert len(tables) == 1

    def test_idempotent_init(self, db):
        # calling init_db again should not raise
        init_db(db)
        assert count_events(db) == 0


class TestInsertEvents:
    def test_insert_single_event(self, db):
        inserted, dupes = insert_events(db, [_make_row()])
        assert inserted == 1
        assert dupes == 0
        assert count_events(db) == 1

    def test_insert_multiple_events(self, db):
        rows = [_make_row(f"evt_{i}") for i in range(5)]
        inserted, dupes = insert_events(db, rows)
        assert inserted == 5
        assert dupes == 0
        assert count_events(db) == 5

    def test_duplicate_event_rejected(self, db):
        row = _make_row("evt_dup")
        insert_events(db, [row])
        inserted, dupes = insert_events(db, [row])
        assert inserted == 0
        assert dupes == 1
        assert count_events(db) == 1

    def test_mixed_new_and_duplicate(self, db):
        insert_events(db, [_make_row("evt_1")])
        batch = [_make_row("evt_1"), _make_row("evt_2"), _make_row("evt_3")]
        inserted, dupes = insert_events(db, batch)
        assert inserted == 2
        assert dupes == 1
        assert count_events(db) == 3

    def test_empty_batch(self, db):
        inserted, dupes = insert_events(db, [])
        assert inserted == 0
        assert dupes == 0

    def test_json_columns_stored_as_json(self, db):
        row = _make_row()
        row["device_info"] = {"DeviceType": "mobile"}
        insert_events(db, [row])
        result = db.execute(
            "SELECT json_extract_string(device_info, '$.DeviceType'), custom_data FROM raw_events"
        ).fetchone()
        assert result[0] == "mobile"
        assert "/home" in result[1]

    def test_optional_columns_default_to_null(self, db):
        insert_events(db, [_make_row()])
        row = db.execute("SELECT user_id, value, ecommerce FROM raw_events").fetchone()
        assert row == (None, None, None)

    def test_ingested_at_populated(self, db):
        insert_events(db, [_make_row()])
        row = db.execute(
            "SELECT ingested_at FROM raw_events WHERE event_id = 'evt_1'"
        ).fetchone()
        assert row[0] is not None
