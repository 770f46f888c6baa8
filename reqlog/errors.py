"""Exceptions raised by the request log store."""


class RequestLogError(Exception):
    """Base class for all request log errors."""


class StoreError(RequestLogError):
    """The store could not be opened."""


class SchemaError(StoreError):
    """The request tables could not be created."""


class PreparationError(RequestLogError):
    """The store rejected an insert statement."""


class AlreadyPreparedError(RequestLogError):
    """Statements were prepared twice without closing in between."""


class StatementClosedError(RequestLogError):
    """A statement was used after it was closed or before it was prepared."""


class UnknownKindError(RequestLogError, ValueError):
    """An event kind is not one of started, completed or failed."""

    def __init__(self, kind: object):
        super().__init__(f"Unknown event kind: {kind!r}")
        self.kind = kind


class InsertError(RequestLogError):
    """A record could not be written (constraint violation or invalid fields)."""


class NoActiveBatchError(RequestLogError):
    """An insert was attempted outside of a running batch."""


class BatchInProgressError(RequestLogError):
    """An operation needs the session to be idle, but a batch is running."""
