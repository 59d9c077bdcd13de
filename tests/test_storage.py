"""Tests for the SongVault catalog store."""

from __future__ import annotations

from datetime import datetime

import pytest

from songvault.storage import Database


@pytest.mark.asyncio()
async def test_connect_creates_table(db: Database):
    cur = await db.conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    tables = {row["name"] for row in await cur.fetchall()}
    assert "songs" in tables


@pytest.mark.asyncio()
async def test_conn_before_connect_raises(tmp_path):
    database = Database(tmp_path / "x.db")
    with pytest.raises(RuntimeError, match="not connected"):
        _ = database.conn


@pytest.mark.asyncio()
async def test_connect_creates_parent_directory(tmp_path):
    database = Database(tmp_path / "nested" / "dir" / "catalog.db")
    await database.connect()
    try:
        assert (tmp_path / "nested" / "dir" / "catalog.db").exists()
    finally:
        await database.close()


@pytest.mark.asyncio()
async def test_insert_song_assigns_id_and_timestamp(db: Database):
    song = await db.insert_song(title="track", location="/songs/track.mp3", storage_kind="local")
    assert song.id
    assert song.title == "track"
    assert song.storage_kind == "local"
    assert isinstance(song.created_at, datetime)


@pytest.mark.asyncio()
async def test_ids_are_unique(db: Database):
    songs = await db.insert_songs([("a", "/a.mp3", "local"), ("b", "/b.mp3", "local")])
    assert len({s.id for s in songs}) == 2


@pytest.mark.asyncio()
async def test_get_song_round_trip(db: Database):
    created = await db.insert_song(
        title="remote", location="https://res.cloudinary.com/x/video/upload/v1/songs/abc.mp3", storage_kind="remote"
    )
    fetched = await db.get_song(created.id)
    assert fetched == created


@pytest.mark.asyncio()
async def test_get_song_unknown(db: Database):
    assert await db.get_song("does-not-exist") is None


@pytest.mark.asyncio()
async def test_list_songs_keeps_insertion_order(db: Database):
    await db.insert_songs([("zeta", "/z.mp3", "local"), ("alpha", "/a.mp3", "local")])
    await db.insert_song(title="mid", location="/m.mp3", storage_kind="local")
    titles = [s.title for s in await db.list_songs()]
    assert titles == ["zeta", "alpha", "mid"]


@pytest.mark.asyncio()
async def test_list_locations(db: Database):
    await db.insert_songs([("a", "/a.mp3", "local"), ("b", "/b.mp3", "local")])
    assert await db.list_locations() == {"/a.mp3", "/b.mp3"}


@pytest.mark.asyncio()
async def test_delete_song(db: Database):
    song = await db.insert_song(title="a", location="/a.mp3", storage_kind="local")
    assert await db.delete_song(song.id) is True
    assert await db.get_song(song.id) is None
    assert await db.delete_song(song.id) is False


@pytest.mark.asyncio()
async def test_count_songs(db: Database):
    assert await db.count_songs() == 0
    await db.insert_songs([("a", "/a.mp3", "local"), ("b", "/b.mp3", "local")])
    assert await db.count_songs() == 2


@pytest.mark.asyncio()
async def test_storage_kind_is_checked(db: Database):
    import aiosqlite

    with pytest.raises(aiosqlite.IntegrityError):
        await db.insert_song(title="a", location="/a.mp3", storage_kind="tape")
    assert await db.count_songs() == 0
