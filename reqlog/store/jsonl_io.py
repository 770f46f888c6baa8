"""JSONL import for request log stores.

Each line holds one event record as emitted by a log parser, e.g.
``{"kind": "completed", "line": 12, "url": "/", "status": 200}``.
Used for replaying parsed logs, sharing repros, and migrating data.
"""

import json
from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from reqlog.models.results import BatchResult
    from reqlog.store.session import Session


def iter_events_jsonl(input_path: str | Path) -> Iterator[dict[str, Any]]:
    """Yield event records from a JSONL file.

    Args:
        input_path: Path to the JSONL file.

    Yields:
        One record mapping per non-blank line.

    Raises:
        ValueError: If a line is not a JSON object.
    """
    input_path = Path(input_path)

    with open(input_path, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue

            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON on line {line_num}: {e}") from e

            if not isinstance(data, dict):
                raise ValueError(f"Expected an object on line {line_num}")
            yield data


def import_events_jsonl(session: "Session", input_path: str | Path) -> "BatchResult":
    """Import every record of a JSONL file in one batch.

    A malformed line fails the batch, so either the whole file is imported
    or nothing is.

    Args:
        session: The session to write to.
        input_path: Path to the JSONL file.

    Returns:
        The batch outcome.
    """

    def produce(batch) -> None:
        for record in iter_events_jsonl(input_path):
            batch.insert_one(record)

    return session.run_batch(produce)
