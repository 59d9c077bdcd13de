"""Async SQLite database for the SongVault catalog."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from songvault.storage.models import Song

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS songs (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    location TEXT NOT NULL,
    storage_kind TEXT NOT NULL CHECK(storage_kind IN ('local', 'remote')),
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS ix_songs_location ON songs(location);
"""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


class Database:
    """Async SQLite database wrapper for the song catalog."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._conn: aiosqlite.Connection | None = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            msg = "Database not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._conn

    async def connect(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.executescript(_SCHEMA)
        await self._conn.commit()

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    # -- songs ----------------------------------------------------------------

    async def insert_song(self, *, title: str, location: str, storage_kind: str) -> Song:
        songs = await self.insert_songs([(title, location, storage_kind)])
        return songs[0]

    async def insert_songs(self, entries: Iterable[tuple[str, str, str]]) -> list[Song]:
        """Insert ``(title, location, storage_kind)`` rows in one transaction.

        Ids and creation timestamps are assigned here.
        """
        now = _now_iso()
        rows = [(_new_id(), title, location, kind, now) for title, location, kind in entries]
        try:
            await self.conn.executemany(
                """
                INSERT INTO songs (id, title, location, storage_kind, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                rows,
            )
            await self.conn.commit()
        except aiosqlite.Error:
            await self.conn.rollback()
            raise
        return [
            Song(id=song_id, title=title, location=location, storage_kind=kind, created_at=created_at)
            for song_id, title, location, kind, created_at in rows
        ]

    async def get_song(self, song_id: str) -> Song | None:
        cur = await self.conn.execute("SELECT * FROM songs WHERE id = ?", (song_id,))
        row = await cur.fetchone()
        return self._row_to_song(row) if row else None

    async def list_songs(self) -> list[Song]:
        cur = await self.conn.execute("SELECT * FROM songs ORDER BY rowid")
        rows = await cur.fetchall()
        return [self._row_to_song(r) for r in rows]

    async def list_locations(self) -> set[str]:
        cur = await self.conn.execute("SELECT location FROM songs")
        rows = await cur.fetchall()
        return {r["location"] for r in rows}

    async def delete_song(self, song_id: str) -> bool:
        """Delete a record; return False if no row matched."""
        cur = await self.conn.execute("DELETE FROM songs WHERE id = ?", (song_id,))
        await self.conn.commit()
        return cur.rowcount > 0

    async def count_songs(self) -> int:
        cur = await self.conn.execute("SELECT COUNT(*) FROM songs")
        row = await cur.fetchone()
        return row[0]

    # -- row → model helpers --------------------------------------------------

    @staticmethod
    def _row_to_song(row: aiosqlite.Row) -> Song:
        return Song(
            id=row["id"],
            title=row["title"],
            location=row["location"],
            storage_kind=row["storage_kind"],
            created_at=row["created_at"],
        )
