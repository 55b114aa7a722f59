"""SQLite record storage addressed by (pk, sk) pairs, the default local backend."""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    pk TEXT NOT NULL,
    sk TEXT NOT NULL,
    data TEXT NOT NULL,
    written_at TEXT NOT NULL,
    PRIMARY KEY (pk, sk)
)
"""


class SQLiteStore:
    """Record store where every write replaces the whole row for its key."""

    def __init__(self, db_path: str, *, busy_timeout: float = 5.0) -> None:
        self._db_path = Path(db_path).expanduser()
        self._busy_timeout = busy_timeout
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._transaction() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute(_SCHEMA)
        logger.debug("SQLite credential store ready at %s", self._db_path)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with closing(
            sqlite3.connect(self._db_path, timeout=self._busy_timeout, check_same_thread=False)
        ) as conn:
            conn.row_factory = sqlite3.Row
            with conn:
                yield conn

    def put_item(self, item: Dict[str, Any]) -> None:
        pk, sk = item.get("pk"), item.get("sk")
        if not pk or not sk:
            raise ValueError("Record requires non-empty 'pk' and 'sk' values.")

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO records (pk, sk, data, written_at) VALUES (?, ?, ?, ?)
                ON CONFLICT(pk, sk) DO UPDATE SET
                    data = excluded.data,
                    written_at = excluded.written_at
                """,
                (pk, sk, json.dumps(item), datetime.now(timezone.utc).isoformat()),
            )

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT data FROM records WHERE pk = ? AND sk = ?",
                (partition_key, sort_key),
            ).fetchone()
        return json.loads(row["data"]) if row else None

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM records WHERE pk = ? AND sk = ?", (partition_key, sort_key)
            )


__all__ = ["SQLiteStore"]
