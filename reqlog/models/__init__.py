"""Request log data models."""

from reqlog.models.events import (
    EventKind,
    RequestEvent,
    StartedEvent,
    CompletedEvent,
    FailedEvent,
    event_kind_of,
    event_params,
    parse_event,
)
from reqlog.models.results import BatchResult

__all__ = [
    # Events
    "EventKind",
    "RequestEvent",
    "StartedEvent",
    "CompletedEvent",
    "FailedEvent",
    "event_kind_of",
    "event_params",
    "parse_event",
    # Results
    "BatchResult",
]
