"""Request log storage."""

from reqlog.store.session import Session, BatchHandle, open_session, insert_batch_into
from reqlog.store.statements import StatementPool, PreparedInsert
from reqlog.store.tracker import CorrelationTracker
from reqlog.store.schema import ensure_schema, table_names
from reqlog.store.jsonl_io import iter_events_jsonl, import_events_jsonl

__all__ = [
    "Session",
    "BatchHandle",
    "open_session",
    "insert_batch_into",
    "StatementPool",
    "PreparedInsert",
    "CorrelationTracker",
    "ensure_schema",
    "table_names",
    "iter_events_jsonl",
    "import_events_jsonl",
]
