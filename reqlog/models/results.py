"""Result models returned by batch writes."""

from pydantic import BaseModel

from reqlog.models.events import EventKind


class BatchResult(BaseModel):
    """Outcome of one batch session.

    A rolled-back batch persists nothing, so ``inserted`` is empty and
    ``error`` carries the cause.
    """

    batch_id: str
    committed: bool

    # Rows written per table
    inserted: dict[EventKind, int] = {}

    # Records dropped because their kind was missing or unknown
    ignored: int = 0

    # Unterminated request diagnostics
    warnings: list[str] = []

    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.committed and self.error is None

    @property
    def total(self) -> int:
        """Total rows written across all tables."""
        return sum(self.inserted.values())
