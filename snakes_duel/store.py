"""Match document stores.

A store keeps one row per room and announces every committed write on
an optional :class:`~snakes_duel.realtime.Channel`. Writes are applied
atomically one at a time, but nothing orders two clients' writes against
each other: the last update wins.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import Protocol

from snakes_duel.errors import RowNotFound, StoreError
from snakes_duel.realtime import ChangeEvent, Channel

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Keyed record store the session talks to."""

    async def select(self, room_id: str) -> dict: ...

    async def insert(self, record: dict) -> dict: ...

    async def update(self, room_id: str, changes: dict) -> dict: ...

    async def delete(self, room_id: str) -> None: ...

    async def list_records(self) -> list[dict]: ...


# ── In-memory ───────────────────────────────────────────────────────

class MemoryStore:
    """Dict-backed store. Every call yields to the event loop first."""

    def __init__(self, channel: Channel | None = None, latency: float = 0.0):
        self.channel = channel
        self.latency = latency
        self._rows: dict[str, dict] = {}

    async def select(self, room_id: str) -> dict:
        await asyncio.sleep(self.latency)
        row = self._rows.get(room_id)
        if row is None:
            raise RowNotFound(room_id)
        return copy.deepcopy(row)

    async def insert(self, record: dict) -> dict:
        await asyncio.sleep(self.latency)
        room_id = record["room_id"]
        if room_id in self._rows:
            raise StoreError(f"Room {room_id} already exists")
        row = copy.deepcopy(record)
        if not row.get("id"):
            row["id"] = uuid.uuid4().hex
        self._rows[room_id] = row
        self._publish("insert", room_id, row)
        return copy.deepcopy(row)

    async def update(self, room_id: str, changes: dict) -> dict:
        await asyncio.sleep(self.latency)
        row = self._rows.get(room_id)
        if row is None:
            raise RowNotFound(room_id)
        row.update(copy.deepcopy(changes))
        self._publish("update", room_id, row)
        return copy.deepcopy(row)

    async def delete(self, room_id: str) -> None:
        await asyncio.sleep(self.latency)
        row = self._rows.pop(room_id, None)
        if row is None:
            raise RowNotFound(room_id)
        self._publish("delete", room_id, row)

    async def list_records(self) -> list[dict]:
        await asyncio.sleep(self.latency)
        rows = sorted(self._rows.values(), key=lambda r: r.get("updated_at") or "", reverse=True)
        return copy.deepcopy(rows)

    def _publish(self, kind: str, room_id: str, row: dict) -> None:
        logger.debug("%s room %s", kind, room_id)
        if self.channel is not None:
            self.channel.publish(ChangeEvent(kind, room_id, copy.deepcopy(row)))


# ── SQLite ──────────────────────────────────────────────────────────

class SqliteStore:
    """One ``matches`` row per room; the full document lives in a JSON column.

    The player and winner columns are copies kept for ad-hoc queries.
    """

    def __init__(self, path: Path | str, channel: Channel | None = None):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.channel = channel
        self._conn = sqlite3.connect(self.path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

    def _create_tables(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS matches (
                room_id         TEXT PRIMARY KEY,
                id              TEXT NOT NULL UNIQUE,
                player1_id      TEXT NOT NULL,
                player1_name    TEXT NOT NULL,
                player2_id      TEXT,
                player2_name    TEXT,
                winner          TEXT,
                document        TEXT NOT NULL,
                updated_at      TEXT
            );
        """)
        self._conn.commit()

    def _load(self, room_id: str) -> dict:
        row = self._conn.execute(
            "SELECT document FROM matches WHERE room_id = ?", (room_id,)
        ).fetchone()
        if row is None:
            raise RowNotFound(room_id)
        return json.loads(row[0])

    def _save(self, record: dict, insert: bool) -> None:
        params = (
            record["id"], record["player1_id"], record.get("player1_name") or "",
            record.get("player2_id"), record.get("player2_name"), record.get("winner"),
            json.dumps(record), record.get("updated_at"), record["room_id"],
        )
        if insert:
            self._conn.execute(
                "INSERT INTO matches (id, player1_id, player1_name, player2_id, player2_name, "
                "winner, document, updated_at, room_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                params,
            )
        else:
            self._conn.execute(
                "UPDATE matches SET id = ?, player1_id = ?, player1_name = ?, player2_id = ?, "
                "player2_name = ?, winner = ?, document = ?, updated_at = ? WHERE room_id = ?",
                params,
            )
        self._conn.commit()

    async def select(self, room_id: str) -> dict:
        await asyncio.sleep(0)
        try:
            return self._load(room_id)
        except sqlite3.Error as e:
            raise StoreError(f"select {room_id}: {e}") from e

    async def insert(self, record: dict) -> dict:
        await asyncio.sleep(0)
        row = copy.deepcopy(record)
        if not row.get("id"):
            row["id"] = uuid.uuid4().hex
        try:
            self._save(row, insert=True)
        except sqlite3.IntegrityError as e:
            raise StoreError(f"Room {row['room_id']} already exists") from e
        except sqlite3.Error as e:
            raise StoreError(f"insert {row['room_id']}: {e}") from e
        self._publish("insert", row["room_id"], row)
        return row

    async def update(self, room_id: str, changes: dict) -> dict:
        await asyncio.sleep(0)
        try:
            row = self._load(room_id)
            row.update(copy.deepcopy(changes))
            self._save(row, insert=False)
        except sqlite3.Error as e:
            raise StoreError(f"update {room_id}: {e}") from e
        self._publish("update", room_id, row)
        return row

    async def delete(self, room_id: str) -> None:
        await asyncio.sleep(0)
        try:
            row = self._load(room_id)
            self._conn.execute("DELETE FROM matches WHERE room_id = ?", (room_id,))
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"delete {room_id}: {e}") from e
        self._publish("delete", room_id, row)

    async def list_records(self) -> list[dict]:
        await asyncio.sleep(0)
        rows = self._conn.execute(
            "SELECT document FROM matches ORDER BY updated_at DESC"
        ).fetchall()
        return [json.loads(r[0]) for r in rows]

    def close(self) -> None:
        self._conn.close()

    def _publish(self, kind: str, room_id: str, row: dict) -> None:
        logger.debug("%s room %s", kind, room_id)
        if self.channel is not None:
            self.channel.publish(ChangeEvent(kind, room_id, copy.deepcopy(row)))
