"""Transactional write sessions for the request log store.

Design principles:
- One connection, one transaction at a time, no internal threading
- A batch is all-or-nothing: any failure rolls back every row it wrote
- Insert statements live exactly as long as one batch
- Records are routed on their kind tag; unknown kinds are dropped, not fatal
"""

import logging
import sqlite3
from collections import Counter
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Union

import ulid
from pydantic import ValidationError

from reqlog.config import StoreConfig
from reqlog.errors import (
    BatchInProgressError,
    InsertError,
    NoActiveBatchError,
    RequestLogError,
    StoreError,
    UnknownKindError,
)
from reqlog.models.events import (
    CompletedEvent,
    EventKind,
    FailedEvent,
    StartedEvent,
    TERMINAL_KINDS,
    event_kind_of,
    event_params,
    parse_event,
)
from reqlog.models.results import BatchResult
from reqlog.store.schema import ensure_schema
from reqlog.store.statements import StatementPool
from reqlog.store.tracker import CorrelationTracker

logger = logging.getLogger(__name__)


EventRecord = Union[StartedEvent, CompletedEvent, FailedEvent, Mapping[str, Any]]
Producer = Callable[["BatchHandle"], Any]

BACKFILL_SQL = """
    UPDATE completed_requests
       SET database_time = duration - rendering_time
     WHERE database_time IS NULL OR database_time = 0.0
"""


class BatchHandle:
    """Handle given to a batch producer.

    Only valid while its batch runs; afterwards insert_one raises
    NoActiveBatchError.
    """

    def __init__(self, session: "Session", batch_id: str):
        self.batch_id = batch_id
        self.inserted: Counter[EventKind] = Counter()
        self.ignored = 0
        self.warnings: list[str] = []
        self.active = True
        self._session = session

    def insert_one(self, record: EventRecord) -> int | None:
        """Write one event record within this batch.

        Returns:
            The new row id, or None if the record was ignored.
        """
        if not self.active:
            raise NoActiveBatchError(f"Batch {self.batch_id} has already finished")
        return self._session._route(record, self)


class Session:
    """A write session against one request log database.

    Opening a session ensures the request tables exist. Writes go through
    run_batch (many records, one transaction) or insert_single (one record,
    one transaction).
    """

    def __init__(self, config: StoreConfig):
        """Open the store and ensure its schema.

        Raises:
            StoreError: If the database cannot be opened or configured.
            SchemaError: If the request tables cannot be created.
        """
        self.config = config
        try:
            # Autocommit; batches issue BEGIN/COMMIT/ROLLBACK themselves
            self._conn = sqlite3.connect(
                config.db_path,
                timeout=config.timeout,
                isolation_level=None,
            )
        except sqlite3.Error as e:
            raise StoreError(f"Could not open {config.db_path}: {e}") from e

        try:
            self._configure()
            ensure_schema(self._conn)
        except RequestLogError:
            self._conn.close()
            raise

        self._pool = StatementPool(self._conn)
        self.tracker = CorrelationTracker()
        self._batch: BatchHandle | None = None
        self.last_result: BatchResult | None = None

    def _configure(self) -> None:
        if self.config.is_memory:
            return
        try:
            self._conn.execute(f"PRAGMA journal_mode={self.config.journal_mode}")
        except sqlite3.Error as e:
            raise StoreError(f"Could not configure {self.config.db_path}: {e}") from e

    @property
    def in_batch(self) -> bool:
        return self._batch is not None

    @property
    def statements(self) -> StatementPool:
        return self._pool

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def run_batch(self, producer: Producer) -> BatchResult:
        """Run a producer inside one transaction.

        The producer receives a BatchHandle and calls insert_one on it zero
        or more times. If anything raises while the batch runs, the
        transaction is rolled back and the failure is returned in the result
        rather than raised.

        Args:
            producer: Callable driving the inserts.

        Returns:
            The batch outcome.

        Raises:
            BatchInProgressError: If a batch is already running.
        """
        if self._batch is not None:
            raise BatchInProgressError("A batch is already running on this session")

        batch = BatchHandle(self, str(ulid.new()))
        self._batch = batch
        tracker_state = self.tracker.snapshot()
        try:
            self._conn.execute("BEGIN")
            self._pool.prepare()
            producer(batch)
            self._pool.close()
            self._conn.execute("COMMIT")
        except Exception as e:
            self._abort(tracker_state)
            logger.error("Batch %s rolled back: %s", batch.batch_id, e)
            result = BatchResult(
                batch_id=batch.batch_id,
                committed=False,
                ignored=batch.ignored,
                warnings=batch.warnings,
                error=str(e) or type(e).__name__,
            )
        except BaseException:
            self._abort(tracker_state)
            raise
        else:
            result = BatchResult(
                batch_id=batch.batch_id,
                committed=True,
                inserted=dict(batch.inserted),
                ignored=batch.ignored,
                warnings=batch.warnings,
            )
            logger.info(
                "Batch %s committed: %d rows (%d ignored)",
                batch.batch_id,
                result.total,
                result.ignored,
            )
        finally:
            batch.active = False
            self._batch = None

        self.last_result = result
        return result

    def insert_one(self, record: EventRecord) -> int | None:
        """Write one record into the running batch.

        Raises:
            NoActiveBatchError: If no batch is running.
        """
        if self._batch is None:
            raise NoActiveBatchError(
                "insert_one needs a running batch; use run_batch or insert_single"
            )
        return self._batch.insert_one(record)

    def insert_single(self, record: EventRecord) -> BatchResult:
        """Write one record in its own transaction."""
        return self.run_batch(lambda batch: batch.insert_one(record))

    def _abort(self, tracker_state: tuple[int | None, int | None]) -> None:
        """Release statements, roll back, and return the tracker to its state before the batch."""
        self._pool.close()
        if self._conn.in_transaction:
            self._conn.execute("ROLLBACK")
        self.tracker.restore(tracker_state)

    def _route(self, record: EventRecord, batch: BatchHandle) -> int | None:
        event = self._resolve(record)
        if event is None:
            batch.ignored += 1
            logger.warning("Ignored unknown statement type")
            return None

        kind = EventKind(event.kind)
        params = event_params(event)

        if kind is EventKind.STARTED:
            warning = self.tracker.on_started(event.line)
            if warning:
                batch.warnings.append(warning)
        elif kind in TERMINAL_KINDS:
            params["started_request_id"] = self.tracker.on_terminal()

        row_id = self._pool.get(kind).execute(params)

        if kind is EventKind.STARTED:
            self.tracker.bind(row_id)
        batch.inserted[kind] += 1
        return row_id

    @staticmethod
    def _resolve(record: EventRecord) -> StartedEvent | CompletedEvent | FailedEvent | None:
        """Turn a record into its event model, or None if its kind is unknown."""
        if isinstance(record, (StartedEvent, CompletedEvent, FailedEvent)):
            return record
        if not isinstance(record, Mapping):
            return None

        kind = event_kind_of(record)
        if kind is None:
            return None
        try:
            return parse_event(record)
        except ValidationError as e:
            raise InsertError(f"Invalid {kind.value} record: {e}") from e

    # -------------------------------------------------------------------------
    # Queries and maintenance
    # -------------------------------------------------------------------------

    def count(self, table_base: EventKind | str) -> int:
        """Count the rows of ``{table_base}_requests``.

        Raises:
            UnknownKindError: If table_base is not an event kind.
        """
        try:
            kind = EventKind(table_base)
        except ValueError:
            raise UnknownKindError(table_base) from None

        cursor = self._conn.execute(f'SELECT COUNT(*) FROM "{kind.value}_requests"')
        return int(cursor.fetchone()[0])

    def calculate_missing_durations(self) -> int:
        """Derive database time as duration minus rendering time where it is missing.

        Rows with a non-zero database time are left alone, so running this
        twice is harmless.

        Returns:
            Number of rows updated.

        Raises:
            BatchInProgressError: If a batch is running on this session.
        """
        if self._batch is not None:
            raise BatchInProgressError("Cannot backfill while a batch is running")

        cursor = self._conn.execute(BACKFILL_SQL)
        logger.debug("Backfilled database time on %d rows", cursor.rowcount)
        return cursor.rowcount

    def close(self) -> None:
        """Release statements and close the connection."""
        self._pool.close()
        self._conn.close()

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def open_session(
    db_path: str | Path | None = None,
    config: StoreConfig | None = None,
) -> Session:
    """Open a session on a request log database.

    Args:
        db_path: Database path or ":memory:". Overrides config.db_path.
        config: Connection settings (default: from environment).

    Returns:
        An open session with the request tables in place.
    """
    config = config or StoreConfig.from_env()
    if db_path is not None:
        config = config.with_path(db_path)
    return Session(config)


def insert_batch_into(
    db_path: str | Path,
    producer: Producer,
    config: StoreConfig | None = None,
) -> Session:
    """Open a session, run one batch and return the session.

    The batch outcome is available as ``session.last_result``.
    """
    session = open_session(db_path, config)
    session.run_batch(producer)
    return session
