"""Correlation of started requests with their terminal events.

A request log is a single stream: a Started event opens a request and the
next Completed or Failed event closes it. Interleaved requests are not
modelled, so at most one request is open at a time.
"""

import logging

logger = logging.getLogger(__name__)


class CorrelationTracker:
    """Tracks the currently open request of one session."""

    def __init__(self) -> None:
        self.open_line: int | None = None
        self.open_request_id: int | None = None

    @property
    def is_open(self) -> bool:
        return self.open_line is not None

    def on_started(self, line: int) -> str | None:
        """Open a request at ``line``.

        A request that is still open is abandoned. That is not an error, but
        it is logged since it usually points at a truncated log.

        Returns:
            The warning message if a request was abandoned, else None.
        """
        warning = None
        if self.open_line is not None:
            warning = (
                f"Unclosed request encountered on line {line} "
                f"(request started on line {self.open_line})"
            )
            logger.warning(warning)

        self.open_line = line
        self.open_request_id = None
        return warning

    def bind(self, request_id: int) -> None:
        """Record the row id of the open request once it has been inserted."""
        self.open_request_id = request_id

    def on_terminal(self) -> int | None:
        """Close the open request, if any.

        Returns:
            The row id of the request that was open, or None.
        """
        request_id = self.open_request_id
        self.reset()
        return request_id

    def snapshot(self) -> tuple[int | None, int | None]:
        """Current state, for restore() after a rollback."""
        return self.open_line, self.open_request_id

    def restore(self, state: tuple[int | None, int | None]) -> None:
        self.open_line, self.open_request_id = state

    def reset(self) -> None:
        self.open_line = None
        self.open_request_id = None
