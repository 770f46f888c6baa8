"""Prepared insert statements, one per event kind.

Python's sqlite3 compiles statements lazily on first execute. To report a
schema mismatch when the pool is prepared rather than on the first insert,
each statement is compiled up front with EXPLAIN, which builds the program
without running it.
"""

import logging
import re
import sqlite3
from typing import Any

from reqlog.errors import (
    AlreadyPreparedError,
    InsertError,
    PreparationError,
    StatementClosedError,
    UnknownKindError,
)
from reqlog.models.events import EventKind

logger = logging.getLogger(__name__)


INSERT_SQL: dict[EventKind, str] = {
    EventKind.STARTED: """
        INSERT INTO started_requests ( line,  timestamp,  ip,  method,  controller,  action)
                              VALUES (:line, :timestamp, :ip, :method, :controller, :action)
    """,
    EventKind.FAILED: """
        INSERT INTO failed_requests ( line,  started_request_id)
                             VALUES (:line, :started_request_id)
    """,
    EventKind.COMPLETED: """
        INSERT INTO completed_requests ( line,  started_request_id,  url,  status,
                                         duration,  rendering_time,  database_time)
                                VALUES (:line, :started_request_id, :url, :status,
                                        :duration, :rendering, :db)
    """,
}

_PARAM_PATTERN = re.compile(r":(\w+)")


class PreparedInsert:
    """A compiled insert statement bound to its own cursor."""

    def __init__(self, conn: sqlite3.Connection, kind: EventKind, sql: str):
        self.kind = kind
        self.sql = sql
        self.parameters = tuple(dict.fromkeys(_PARAM_PATTERN.findall(sql)))
        self._cursor: sqlite3.Cursor | None = conn.cursor()

        try:
            self._cursor.execute(f"EXPLAIN {sql}", dict.fromkeys(self.parameters))
            self._cursor.fetchall()
        except sqlite3.Error as e:
            self.close()
            raise PreparationError(f"Could not prepare {kind.value} insert: {e}") from e

    @property
    def closed(self) -> bool:
        return self._cursor is None

    def execute(self, params: dict[str, Any]) -> int:
        """Insert one row.

        Only the statement's own parameters are bound; a missing one binds
        NULL so the table's constraints decide whether it is acceptable.

        Returns:
            The id of the inserted row.

        Raises:
            StatementClosedError: If the statement was closed.
            InsertError: If the store rejects the row.
        """
        if self._cursor is None:
            raise StatementClosedError(f"The {self.kind.value} insert statement is closed")

        bound = {name: params.get(name) for name in self.parameters}
        try:
            self._cursor.execute(self.sql, bound)
        except sqlite3.Error as e:
            raise InsertError(f"Could not insert {self.kind.value} request: {e}") from e
        return self._cursor.lastrowid

    def close(self) -> None:
        if self._cursor is not None:
            cursor, self._cursor = self._cursor, None
            cursor.close()


class StatementPool:
    """Owns the three insert statements for one batch.

    Statements are valid for a single batch: prepare at the start, close at
    the end, and prepare again for the next batch. Preparing an already
    prepared pool raises AlreadyPreparedError.
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn
        self._statements: dict[EventKind, PreparedInsert] = {}

    @property
    def prepared(self) -> bool:
        return bool(self._statements)

    def prepare(self) -> None:
        """Compile one insert statement per event kind.

        Raises:
            AlreadyPreparedError: If the pool is already prepared.
            PreparationError: If the store rejects a statement.
        """
        if self._statements:
            raise AlreadyPreparedError("Insert statements are already prepared")

        statements: dict[EventKind, PreparedInsert] = {}
        try:
            for kind, sql in INSERT_SQL.items():
                statements[kind] = PreparedInsert(self._conn, kind, sql)
        except PreparationError:
            for statement in statements.values():
                statement.close()
            raise

        self._statements = statements
        logger.debug("Prepared %d insert statements", len(statements))

    def get(self, kind: EventKind | str) -> PreparedInsert:
        """Return the statement for a kind.

        Raises:
            UnknownKindError: If kind is not a recognized event kind.
            StatementClosedError: If the pool is not prepared.
        """
        try:
            kind = EventKind(kind)
        except ValueError:
            raise UnknownKindError(kind) from None

        statement = self._statements.get(kind)
        if statement is None:
            raise StatementClosedError("Insert statements are not prepared")
        return statement

    def close(self) -> None:
        """Close every prepared statement. No-op if nothing is prepared."""
        statements, self._statements = self._statements, {}
        errors = []
        for statement in statements.values():
            try:
                statement.close()
            except sqlite3.Error as e:
                errors.append(e)
        if statements:
            logger.debug("Closed %d insert statements", len(statements))
        if errors:
            raise errors[0]
