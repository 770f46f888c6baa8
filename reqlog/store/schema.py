"""DDL for the request log tables.

The column sets and nullability here are a compatibility contract with
existing databases. Tables are created once and persist across sessions.
"""

import logging
import sqlite3

from reqlog.errors import SchemaError

logger = logging.getLogger(__name__)


REQUEST_TABLES = ("started_requests", "failed_requests", "completed_requests")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS started_requests (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    line INTEGER NOT NULL,
    timestamp DATETIME NOT NULL,
    controller VARCHAR(255) NOT NULL,
    action VARCHAR(255) NOT NULL,
    method VARCHAR(6) NOT NULL,
    ip VARCHAR(6) NOT NULL
);

CREATE TABLE IF NOT EXISTS failed_requests (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    line INTEGER NOT NULL,
    started_request_id INTEGER,
    status INTEGER
);

CREATE TABLE IF NOT EXISTS completed_requests (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    line INTEGER NOT NULL,
    started_request_id INTEGER,
    url VARCHAR(255) NOT NULL,
    hashed_url VARCHAR(255),
    status INTEGER NOT NULL,
    duration FLOAT,
    rendering_time FLOAT,
    database_time FLOAT
);
"""


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Create the request tables if they don't exist.

    Raises:
        SchemaError: If the store rejects the DDL.
    """
    try:
        conn.executescript(SCHEMA_SQL)
    except sqlite3.Error as e:
        raise SchemaError(f"Could not create request tables: {e}") from e
    logger.debug("Request tables ensured")


def table_names(conn: sqlite3.Connection) -> list[str]:
    """List the request tables present in the store."""
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name LIKE '%\\_requests' ESCAPE '\\' ORDER BY name"
    )
    return [row[0] for row in cursor.fetchall()]
