"""Catalog service: ingest, list, remove and resync songs.

Each operation is one object-store call plus one catalog-store call.  The
two stores are never updated atomically:

- an object written before a failed catalog insert stays behind
- a record whose object was deleted stays behind if the record delete fails

Both cases are logged and left for manual cleanup.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import aiosqlite
import structlog

from songvault.errors import DependencyError, NotFoundError, ValidationError
from songvault.objects import (
    AUDIO_EXTENSION,
    LocalObjectStore,
    ObjectStore,
    StoredObject,
    is_audio_filename,
    title_from_filename,
)
from songvault.storage import Database, Song, SongView

log = structlog.get_logger(__name__)

_DEFAULT_MAX_FILES = 10


@dataclass(frozen=True)
class UploadedFile:
    """A file received from a client."""

    filename: str
    data: bytes


@dataclass
class ResyncResult:
    """Outcome of a local-folder resync."""

    added: list[Song] = field(default_factory=list)
    skipped: int = 0

    @property
    def nothing_to_do(self) -> bool:
        return not self.added


class CatalogService:
    """Orchestrates the object store and the catalog store."""

    def __init__(
        self,
        db: Database,
        objects: ObjectStore,
        *,
        public_base_url: str,
        max_files: int = _DEFAULT_MAX_FILES,
    ) -> None:
        self.db = db
        self.objects = objects
        self.public_base_url = public_base_url.rstrip("/")
        self.max_files = max_files

    # -- helpers --------------------------------------------------------------

    def playback_url(self, song: Song) -> str:
        return self.objects.playback_url(song.location, self.public_base_url)

    def to_public(self, song: Song) -> dict:
        return song.to_public(self.playback_url(song))

    def _validate_batch(self, files: list[UploadedFile]) -> None:
        if not files:
            raise ValidationError("No files uploaded")
        if len(files) > self.max_files:
            raise ValidationError(f"Too many files: at most {self.max_files} per upload")
        rejected = [f.filename for f in files if not is_audio_filename(f.filename)]
        if rejected:
            raise ValidationError(
                f"Only {AUDIO_EXTENSION} files are accepted, rejected: {', '.join(rejected)}"
            )

    # -- operations -----------------------------------------------------------

    async def ingest(self, files: list[UploadedFile]) -> list[Song]:
        """Store every file, then catalog them all in one insert."""
        self._validate_batch(files)

        stored: list[tuple[UploadedFile, StoredObject]] = []
        for upload in files:
            try:
                obj = await self.objects.put(upload.filename, upload.data)
            except DependencyError:
                log.error(
                    "ingest_object_failed",
                    filename=upload.filename,
                    written=[o.key for _, o in stored],
                )
                raise
            stored.append((upload, obj))

        entries = [(title_from_filename(u.filename), o.location, o.kind) for u, o in stored]
        try:
            songs = await self.db.insert_songs(entries)
        except aiosqlite.Error as exc:
            log.error("ingest_catalog_failed", orphaned=[o.key for _, o in stored], error=str(exc))
            raise DependencyError("Could not save song records") from exc

        log.info("songs_ingested", count=len(songs), titles=[s.title for s in songs])
        return songs

    async def list_songs(self) -> list[SongView]:
        try:
            songs = await self.db.list_songs()
        except aiosqlite.Error as exc:
            raise DependencyError("Could not read the catalog") from exc
        return [SongView(_id=s.id, title=s.title, url=self.playback_url(s)) for s in songs]

    async def get_song(self, song_id: str) -> Song:
        try:
            song = await self.db.get_song(song_id)
        except aiosqlite.Error as exc:
            raise DependencyError("Could not read the catalog") from exc
        if song is None:
            raise NotFoundError("Song not found")
        return song

    async def remove(self, song_id: str) -> Song:
        """Delete the stored object, then the record.

        If the object delete fails the record is kept, so the catalog never
        points at a file that was removed on purpose.
        """
        song = await self.get_song(song_id)

        try:
            await self.objects.delete(song.location)
        except DependencyError:
            log.error("remove_object_failed", song_id=song_id, location=song.location)
            raise

        try:
            deleted = await self.db.delete_song(song_id)
        except aiosqlite.Error as exc:
            log.error("remove_catalog_failed", song_id=song_id, error=str(exc))
            raise DependencyError("Could not delete song record") from exc
        if not deleted:
            raise NotFoundError("Song not found")

        log.info("song_removed", song_id=song_id, title=song.title)
        return song

    async def resync(self) -> ResyncResult:
        """Catalog files already present in the local folder but not yet recorded."""
        if not isinstance(self.objects, LocalObjectStore):
            raise ValidationError("Resync is only available with local storage")

        try:
            known = await self.db.list_locations()
        except aiosqlite.Error as exc:
            raise DependencyError("Could not read the catalog") from exc

        result = ResyncResult()
        entries = []
        for path in self.objects.list_files():
            if str(path) in known:
                result.skipped += 1
                continue
            entries.append((title_from_filename(path.name, strip_prefix=True), str(path), self.objects.kind))

        if entries:
            try:
                result.added = await self.db.insert_songs(entries)
            except aiosqlite.Error as exc:
                raise DependencyError("Could not save song records") from exc

        log.info("catalog_resynced", added=len(result.added), skipped=result.skipped)
        return result
