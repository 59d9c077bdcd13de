"""SongVault catalog store: async SQLite database of song records."""

from songvault.storage.database import Database
from songvault.storage.models import Song, SongView, StorageKind

__all__ = [
    "Database",
    "Song",
    "SongView",
    "StorageKind",
]
