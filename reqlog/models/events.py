"""Event models for the request log.

A request log is a stream of lifecycle events. Every HTTP request the
application served shows up as a Started event, followed by either a
Completed or a Failed event. The ``kind`` field tags each record and is
used for routing only; it is never persisted as a column.
"""

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------


class EventKind(str, Enum):
    """All event kinds in a request log."""

    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_KINDS = frozenset({EventKind.COMPLETED, EventKind.FAILED})


# -----------------------------------------------------------------------------
# Event types
# -----------------------------------------------------------------------------


class StartedEvent(BaseModel):
    """A request started processing."""

    kind: Literal["started"] = "started"
    line: int
    timestamp: datetime
    ip: str
    method: str
    controller: str
    action: str


class FailedEvent(BaseModel):
    """A request ended with an exception."""

    kind: Literal["failed"] = "failed"
    line: int


class CompletedEvent(BaseModel):
    """A request completed.

    Timings are in the units of the source log. Older logs omit some of
    them, so they may be missing.
    """

    kind: Literal["completed"] = "completed"
    line: int
    url: str
    status: int
    duration: float | None = None
    rendering: float | None = None
    db: float | None = None


RequestEvent = Annotated[
    Union[StartedEvent, CompletedEvent, FailedEvent],
    Field(discriminator="kind"),
]

_event_adapter: TypeAdapter[RequestEvent] = TypeAdapter(RequestEvent)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def event_kind_of(record: Mapping[str, Any]) -> EventKind | None:
    """Return the kind tag of a raw record, or None if missing or unknown."""
    kind = record.get("kind")
    if isinstance(kind, EventKind):
        return kind
    try:
        return EventKind(kind)
    except ValueError:
        return None


def parse_event(record: Mapping[str, Any]) -> RequestEvent:
    """Validate a raw record into its event model.

    Args:
        record: A mapping with a ``kind`` tag and the kind's fields.

    Returns:
        The matching StartedEvent, CompletedEvent or FailedEvent.

    Raises:
        pydantic.ValidationError: If the kind is unknown or fields are invalid.
    """
    data = dict(record)
    if isinstance(data.get("kind"), EventKind):
        data["kind"] = data["kind"].value
    return _event_adapter.validate_python(data)


def event_params(event: RequestEvent) -> dict[str, Any]:
    """Named statement parameters for an event, without the kind tag."""
    params = event.model_dump(exclude={"kind"})
    if isinstance(event, StartedEvent):
        params["timestamp"] = event.timestamp.isoformat(sep=" ")
    return params
