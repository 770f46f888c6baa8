"""Tests for the prepared insert statement pool."""

import sqlite3

import pytest

from reqlog.errors import (
    AlreadyPreparedError,
    InsertError,
    PreparationError,
    StatementClosedError,
    UnknownKindError,
)
from reqlog.models.events import EventKind
from reqlog.store.schema import ensure_schema
from reqlog.store.statements import INSERT_SQL, PreparedInsert, StatementPool


@pytest.fixture
def conn():
    """Create an in-memory connection with the request tables."""
    conn = sqlite3.connect(":memory:")
    ensure_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def pool(conn):
    pool = StatementPool(conn)
    pool.prepare()
    yield pool
    pool.close()


def test_prepare_creates_one_statement_per_kind(pool: StatementPool):
    """Test that every kind gets its statement."""
    assert pool.prepared
    for kind in EventKind:
        assert pool.get(kind).kind is kind


def test_get_accepts_kind_strings(pool: StatementPool):
    """Test looking up statements by plain string."""
    assert pool.get("completed").kind is EventKind.COMPLETED


def test_get_unknown_kind_fails(pool: StatementPool):
    """Test that an unknown kind raises UnknownKindError."""
    with pytest.raises(UnknownKindError):
        pool.get("redirected")


def test_prepare_twice_fails(pool: StatementPool):
    """Test that preparing an already prepared pool is rejected."""
    with pytest.raises(AlreadyPreparedError):
        pool.prepare()
    assert pool.prepared


def test_prepare_again_after_close(pool: StatementPool):
    """Test that a closed pool can be prepared for the next batch."""
    pool.close()
    pool.prepare()
    assert pool.prepared


def test_get_after_close_fails(pool: StatementPool):
    """Test that a closed pool hands out no statements."""
    pool.close()

    assert not pool.prepared
    with pytest.raises(StatementClosedError):
        pool.get(EventKind.FAILED)


def test_statement_unusable_after_close(pool: StatementPool, conn):
    """Test that a statement obtained before close() cannot insert after it."""
    statement = pool.get(EventKind.FAILED)
    pool.close()

    assert statement.closed
    with pytest.raises(StatementClosedError):
        statement.execute({"line": 1})
    assert conn.execute("SELECT COUNT(*) FROM failed_requests").fetchone()[0] == 0


def test_close_unprepared_pool_is_noop(conn):
    """Test closing a pool that was never prepared."""
    pool = StatementPool(conn)
    pool.close()
    assert not pool.prepared


def test_execute_returns_row_ids_in_order(pool: StatementPool):
    """Test that row ids are assigned monotonically."""
    statement = pool.get(EventKind.FAILED)
    ids = [statement.execute({"line": line}) for line in (10, 20, 30)]
    assert ids == sorted(ids)
    assert len(set(ids)) == 3


def test_execute_ignores_extra_params(pool: StatementPool, conn):
    """Test that keys without a matching placeholder are not bound."""
    pool.get(EventKind.FAILED).execute({"line": 4, "url": "/ignored"})
    row = conn.execute("SELECT line, started_request_id FROM failed_requests").fetchone()
    assert row == (4, None)


def test_execute_constraint_violation_raises(pool: StatementPool):
    """Test that a NOT NULL violation surfaces as InsertError."""
    with pytest.raises(InsertError):
        pool.get(EventKind.COMPLETED).execute({"line": 1, "url": "/"})


def test_prepare_against_missing_table_fails(conn):
    """Test that a schema mismatch is reported at prepare time."""
    conn.execute("DROP TABLE completed_requests")
    pool = StatementPool(conn)

    with pytest.raises(PreparationError):
        pool.prepare()
    assert not pool.prepared


def test_prepare_failure_closes_earlier_statements(conn, monkeypatch):
    """Test that statements prepared before a failure are released."""
    created: list[PreparedInsert] = []
    original_init = PreparedInsert.__init__

    def tracking_init(self, *args, **kwargs):
        original_init(self, *args, **kwargs)
        created.append(self)

    monkeypatch.setattr(PreparedInsert, "__init__", tracking_init)
    conn.execute("DROP TABLE completed_requests")

    with pytest.raises(PreparationError):
        StatementPool(conn).prepare()

    assert created
    assert all(statement.closed for statement in created)


def test_parameters_extracted_from_sql(conn):
    """Test placeholder extraction for the completed insert."""
    statement = PreparedInsert(conn, EventKind.COMPLETED, INSERT_SQL[EventKind.COMPLETED])
    assert statement.parameters == (
        "line",
        "started_request_id",
        "url",
        "status",
        "duration",
        "rendering",
        "db",
    )
    statement.close()
