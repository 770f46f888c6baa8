"""Store configuration.

Environment:
- REQLOG_DB: database path (default: requests.db)
- REQLOG_TIMEOUT: SQLite busy timeout in seconds (default: 30)
- REQLOG_JOURNAL_MODE: journal mode for file databases (default: WAL)
"""

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


DEFAULT_DB = "requests.db"
MEMORY_DB = ":memory:"

JournalMode = Literal["DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"]


class StoreConfig(BaseModel):
    """Connection settings for a request log store."""

    db_path: str = DEFAULT_DB
    timeout: float = Field(default=30.0, gt=0)
    journal_mode: JournalMode = "WAL"

    @property
    def is_memory(self) -> bool:
        return self.db_path == MEMORY_DB

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """Create config from environment variables."""
        return cls(
            db_path=os.environ.get("REQLOG_DB", DEFAULT_DB),
            timeout=os.environ.get("REQLOG_TIMEOUT", "30"),
            journal_mode=os.environ.get("REQLOG_JOURNAL_MODE", "WAL").upper(),
        )

    def with_path(self, db_path: str | Path) -> "StoreConfig":
        return self.model_copy(update={"db_path": str(db_path)})
