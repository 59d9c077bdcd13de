"""Shared fixtures for SongVault tests."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
import pytest_asyncio

from songvault.catalog import CatalogService
from songvault.config import AppConfig, StorageConfig
from songvault.objects import LocalObjectStore
from songvault.server.api import create_app
from songvault.storage import Database

BASE_URL = "http://testserver"

MP3_BYTES = b"ID3\x04\x00\x00\x00\x00\x00\x00" + b"\xff\xfb\x90\x00" * 64


@pytest.fixture()
def songs_dir(tmp_path: Path) -> Path:
    folder = tmp_path / "songs"
    folder.mkdir()
    return folder


@pytest_asyncio.fixture()
async def db(tmp_path: Path) -> Database:
    """Provide a fresh connected catalog database for each test."""
    database = Database(tmp_path / "catalog.db")
    await database.connect()
    yield database
    await database.close()


@pytest.fixture()
def local_store(songs_dir: Path) -> LocalObjectStore:
    return LocalObjectStore(songs_dir)


@pytest.fixture()
def service(db: Database, local_store: LocalObjectStore) -> CatalogService:
    return CatalogService(db, local_store, public_base_url=BASE_URL)


@pytest.fixture()
def app_config(tmp_path: Path, songs_dir: Path) -> AppConfig:
    return AppConfig(
        storage=StorageConfig(database_uri=str(tmp_path / "catalog.db"), songs_folder=songs_dir),
    )


@pytest_asyncio.fixture()
async def api(service: CatalogService, app_config: AppConfig) -> httpx.AsyncClient:
    """An async HTTP client talking to the API in-process."""
    app = create_app(service, app_config)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url=BASE_URL) as client:
        yield client


@pytest.fixture()
def mp3_bytes() -> bytes:
    return MP3_BYTES
