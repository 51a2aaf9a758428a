"""SQLite durable store bound to a file path."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import quote

from fx_resolver.db import DEFAULT_SQLITE_DB_PATH
from fx_resolver.db.relational_backend import RelationalBackend


class SQLiteBackend(RelationalBackend):
    """Relational backend storing rates in a local SQLite file.

    The schema is created on construction so a fresh path is usable at once.
    """

    def __init__(self, db_path: str | Path = DEFAULT_SQLITE_DB_PATH) -> None:
        self.db_path = Path(db_path).expanduser().resolve()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(f"sqlite:///{quote(self.db_path.as_posix(), safe='/:')}")
        self.ensure_schema()


__all__ = ["SQLiteBackend"]
