"""Pydantic models for the SongVault catalog."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

StorageKind = Literal["local", "remote"]


class Song(BaseModel):
    """A catalogued song: metadata plus where its bytes live."""

    id: str
    title: str
    location: str
    storage_kind: StorageKind
    created_at: datetime

    def to_public(self, url: str) -> dict:
        """Serialize for API responses, with *url* as the playback reference."""
        return {
            "_id": self.id,
            "title": self.title,
            "url": url,
            "storageKind": self.storage_kind,
            "createdAt": self.created_at.isoformat(),
        }


class SongView(BaseModel):
    """Listing projection of a song: ``{_id, title, url}``."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    title: str
    url: str
