"""SQLite async database — persisted portal snapshots.

Provides:
- Portal entries keyed by Telegram peer (id, receiver)
- Reverse lookup by Matrix room ID
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

logger = structlog.get_logger()

SCHEMA = """
CREATE TABLE IF NOT EXISTS portals (
    tgid INTEGER NOT NULL,
    receiver_id INTEGER NOT NULL,
    type TEXT NOT NULL DEFAULT 'portal',
    room_id TEXT,
    data TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (tgid, receiver_id)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_portals_room_id ON portals(room_id);
"""


class Database:
    """Async SQLite database for the bridge."""

    def __init__(
        self,
        data_dir: str,
        journal_mode: str = "WAL",
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / "tgportal.db"
        self.journal_mode = journal_mode.upper()
        if self.journal_mode not in {"WAL", "DELETE"}:
            raise ValueError(f"Unsupported SQLite journal mode: {journal_mode}")
        self.busy_timeout_ms = int(busy_timeout_ms)
        self._conn: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Create the database and run migrations."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self.db_path))
        self._conn.row_factory = aiosqlite.Row

        # WAL may fail on network filesystems. Fall back to DELETE mode if unavailable.
        try:
            await self._conn.execute(f"PRAGMA journal_mode={self.journal_mode}")
        except Exception as exc:
            if self.journal_mode == "WAL":
                logger.warning(
                    "db.wal_unavailable_fallback",
                    path=str(self.db_path),
                    error=str(exc),
                )
                await self._conn.execute("PRAGMA journal_mode=DELETE")
            else:
                raise

        await self._conn.execute(f"PRAGMA busy_timeout={self.busy_timeout_ms}")

        await self._conn.executescript(SCHEMA)
        await self._conn.commit()

        logger.info("db.initialized", path=str(self.db_path))

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("db.closed")

    async def execute(self, sql: str, params: tuple = ()) -> aiosqlite.Cursor:
        """Execute a SQL statement."""
        assert self._conn, "Database not initialized"
        cursor = await self._conn.execute(sql, params)
        await self._conn.commit()
        return cursor

    async def fetch_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        """Fetch a single row."""
        assert self._conn, "Database not initialized"
        cursor = await self._conn.execute(sql, params)
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def fetch_all(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Fetch all rows."""
        assert self._conn, "Database not initialized"
        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    # ── Portals ─────────────────────────────────────────────────────

    @staticmethod
    def _row_to_entry(row: dict[str, Any]) -> dict[str, Any]:
        return {
            "type": row["type"],
            "id": row["tgid"],
            "receiverID": row["receiver_id"],
            "roomID": row["room_id"],
            "data": json.loads(row["data"]),
        }

    async def portal_put(self, entry: dict[str, Any]) -> None:
        """Insert or replace a portal entry."""
        now = datetime.now(UTC).isoformat()
        await self.execute(
            """INSERT OR REPLACE INTO portals
                    (tgid, receiver_id, type, room_id, data, updated_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                int(entry["id"]),
                int(entry["receiverID"]),
                entry.get("type", "portal"),
                entry.get("roomID"),
                json.dumps(entry.get("data") or {}),
                now,
            ),
        )

    async def portal_get(self, tgid: int, receiver_id: int) -> dict[str, Any] | None:
        """Get a portal entry by Telegram peer."""
        row = await self.fetch_one(
            "SELECT * FROM portals WHERE tgid = ? AND receiver_id = ?",
            (tgid, receiver_id),
        )
        return self._row_to_entry(row) if row else None

    async def portal_get_by_room(self, room_id: str) -> dict[str, Any] | None:
        """Get a portal entry by Matrix room ID."""
        row = await self.fetch_one("SELECT * FROM portals WHERE room_id = ?", (room_id,))
        return self._row_to_entry(row) if row else None

    async def portal_list(self) -> list[dict[str, Any]]:
        """List all portal entries."""
        rows = await self.fetch_all("SELECT * FROM portals ORDER BY tgid, receiver_id")
        return [self._row_to_entry(row) for row in rows]
