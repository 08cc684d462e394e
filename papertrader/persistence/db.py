from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from papertrader.persistence.store import LedgerStore, LedgerStoreError


class SqliteLedgerStore(LedgerStore):
    """Ledger blobs in a single SQLite table, one row per key."""

    def __init__(self, sqlite_path: str) -> None:
        self._log = logging.getLogger("persistence")
        self.path = Path(sqlite_path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path.as_posix())
        self.conn.row_factory = sqlite3.Row
        self._apply_schema()

    def _apply_schema(self) -> None:
        schema_path = Path(__file__).with_name("schema.sql")
        self.conn.executescript(schema_path.read_text(encoding="utf-8"))
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def get(self, key: str) -> Optional[bytes]:
        try:
            row = self.conn.execute("SELECT value FROM ledger_state WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise LedgerStoreError(f"read failed for {key}: {exc}") from exc
        if row is None:
            return None
        value = row["value"]
        if isinstance(value, str):
            return value.encode("utf-8")
        return bytes(value)

    def put(self, key: str, data: bytes) -> None:
        now = datetime.now(timezone.utc).isoformat()
        try:
            self.conn.execute(
                """
                INSERT INTO ledger_state(key, value, updated_ts)
                VALUES(?,?,?)
                ON CONFLICT(key) DO UPDATE SET
                    value=excluded.value,
                    updated_ts=excluded.updated_ts
                """,
                (key, sqlite3.Binary(data), now),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise LedgerStoreError(f"write failed for {key}: {exc}") from exc
        self._log.debug("state_written", extra={"key": key, "bytes": len(data)})

    def updated_at(self, key: str) -> Optional[datetime]:
        row = self.conn.execute("SELECT updated_ts FROM ledger_state WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        try:
            return datetime.fromisoformat(row["updated_ts"])
        except (TypeError, ValueError):
            return None
