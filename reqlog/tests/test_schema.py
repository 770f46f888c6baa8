"""Tests for request table DDL."""

import sqlite3

import pytest

from reqlog.config import StoreConfig
from reqlog.errors import SchemaError, StoreError
from reqlog.store.schema import REQUEST_TABLES, ensure_schema, table_names
from reqlog.store.session import open_session


def columns(conn: sqlite3.Connection, table: str) -> dict[str, tuple[str, bool]]:
    """Map column name to (declared type, NOT NULL) for a table."""
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return {row[1]: (row[2], bool(row[3])) for row in rows}


def test_creates_all_tables():
    """Test that a fresh store gets the three request tables."""
    conn = sqlite3.connect(":memory:")
    ensure_schema(conn)
    assert table_names(conn) == sorted(REQUEST_TABLES)


def test_ensure_schema_is_idempotent():
    """Test that running the DDL twice neither fails nor duplicates tables."""
    conn = sqlite3.connect(":memory:")
    ensure_schema(conn)
    ensure_schema(conn)

    count = conn.execute(
        "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = 'started_requests'"
    ).fetchone()[0]
    assert count == 1
    assert len(table_names(conn)) == 3


def test_schema_survives_reopen(tmp_path):
    """Test that tables and rows persist across sessions on the same file."""
    db_path = tmp_path / "requests.db"

    with open_session(db_path, StoreConfig()) as session:
        session.insert_single({"kind": "failed", "line": 1})

    with open_session(db_path, StoreConfig()) as session:
        assert session.count("failed") == 1


def test_started_requests_columns():
    """Test started_requests column types and nullability."""
    conn = sqlite3.connect(":memory:")
    ensure_schema(conn)

    assert columns(conn, "started_requests") == {
        "id": ("INTEGER", False),
        "line": ("INTEGER", True),
        "timestamp": ("DATETIME", True),
        "controller": ("VARCHAR(255)", True),
        "action": ("VARCHAR(255)", True),
        "method": ("VARCHAR(6)", True),
        "ip": ("VARCHAR(6)", True),
    }


def test_failed_requests_columns():
    """Test failed_requests column types and nullability."""
    conn = sqlite3.connect(":memory:")
    ensure_schema(conn)

    assert columns(conn, "failed_requests") == {
        "id": ("INTEGER", False),
        "line": ("INTEGER", True),
        "started_request_id": ("INTEGER", False),
        "status": ("INTEGER", False),
    }


def test_completed_requests_columns():
    """Test completed_requests column types and nullability."""
    conn = sqlite3.connect(":memory:")
    ensure_schema(conn)

    assert columns(conn, "completed_requests") == {
        "id": ("INTEGER", False),
        "line": ("INTEGER", True),
        "started_request_id": ("INTEGER", False),
        "url": ("VARCHAR(255)", True),
        "hashed_url": ("VARCHAR(255)", False),
        "status": ("INTEGER", True),
        "duration": ("FLOAT", False),
        "rendering_time": ("FLOAT", False),
        "database_time": ("FLOAT", False),
    }


def test_schema_failure_raises():
    """Test that DDL errors surface as SchemaError."""
    conn = sqlite3.connect(":memory:")
    conn.execute("PRAGMA query_only = ON")

    with pytest.raises(SchemaError):
        ensure_schema(conn)


def test_open_session_unusable_path_fails(tmp_path):
    """Test that a store which cannot be opened aborts session construction."""
    bad_path = tmp_path / "missing_dir" / "requests.db"

    with pytest.raises(StoreError):
        open_session(bad_path, StoreConfig())
