"""Object stores holding the raw audio bytes.

Two backends share the :class:`ObjectStore` interface:

- :class:`LocalObjectStore`: files in a folder served under ``/media``
- :class:`CloudinaryObjectStore`: Cloudinary upload API via httpx

The backend is picked once at startup by :func:`build_object_store`.
"""

from __future__ import annotations

import asyncio
import hashlib
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote, urlsplit

import httpx
import structlog

from songvault.errors import DependencyError
from songvault.storage.models import StorageKind

if TYPE_CHECKING:
    from songvault.config import AppConfig, CloudinaryConfig

log = structlog.get_logger(__name__)

AUDIO_EXTENSION = ".mp3"
MEDIA_ROUTE = "/media"

_API_BASE = "https://api.cloudinary.com/v1_1"
_TIMESTAMP_PREFIX = re.compile(r"^\d{13}-")


# ---------------------------------------------------------------------------
# Filename helpers
# ---------------------------------------------------------------------------


def is_audio_filename(filename: str) -> bool:
    return filename.lower().endswith(AUDIO_EXTENSION)


def title_from_filename(filename: str, *, strip_prefix: bool = False) -> str:
    """Derive a song title from a file name.

    Drops the audio extension.  With *strip_prefix*, also drops the
    ``<epoch ms>-`` prefix that :class:`LocalObjectStore` adds on write.
    """
    name = Path(filename).name
    if is_audio_filename(name):
        name = name[: -len(AUDIO_EXTENSION)]
    if strip_prefix:
        name = _TIMESTAMP_PREFIX.sub("", name, count=1)
    return name


def public_id_from_url(url: str, folder: str = "") -> str:
    """Extract a Cloudinary public id from a delivery URL.

    ``https://res.cloudinary.com/demo/video/upload/v1/songs/abc.mp3`` with
    folder ``songs`` gives ``songs/abc``.
    """
    segment = urlsplit(url).path.rstrip("/").rsplit("/", 1)[-1]
    public_id = segment.split(".", 1)[0]
    if not public_id:
        raise DependencyError(f"Cannot derive object key from {url!r}")
    return f"{folder.strip('/')}/{public_id}" if folder else public_id


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StoredObject:
    """Reference to a written object."""

    key: str
    location: str
    kind: StorageKind


class ObjectStore(ABC):
    """Stores audio blobs and hands back retrievable locations."""

    kind: StorageKind

    async def __aenter__(self) -> ObjectStore:
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    @abstractmethod
    async def put(self, filename: str, data: bytes) -> StoredObject:
        """Write *data* under a key derived from *filename*."""

    @abstractmethod
    async def delete(self, location: str) -> None:
        """Delete the object stored at *location*."""

    @abstractmethod
    def key_for(self, location: str) -> str:
        """Derive the object key from a stored location."""

    @abstractmethod
    def playback_url(self, location: str, base_url: str) -> str:
        """Return the URL clients stream the object from."""


# ---------------------------------------------------------------------------
# Local folder
# ---------------------------------------------------------------------------


class LocalObjectStore(ObjectStore):
    """Stores files in a local folder.

    Files are named ``<epoch ms>-<original name>`` so repeated uploads of the
    same file never overwrite each other.  Locations are absolute paths.
    """

    kind: StorageKind = "local"

    def __init__(self, folder: Path) -> None:
        self.folder = folder.expanduser().resolve()

    def _path_for(self, location: str) -> Path:
        path = Path(location).resolve()
        if path.parent != self.folder:
            raise DependencyError(f"{location} is outside the songs folder")
        return path

    def _write(self, filename: str, data: bytes) -> Path:
        self.folder.mkdir(parents=True, exist_ok=True)
        name = Path(filename).name
        stamp = int(time.time() * 1000)
        while True:
            path = self.folder / f"{stamp}-{name}"
            try:
                # exclusive create: a name taken by a concurrent write is skipped
                with open(path, "xb") as fh:
                    fh.write(data)
            except FileExistsError:
                stamp += 1
                continue
            return path

    async def put(self, filename: str, data: bytes) -> StoredObject:
        try:
            path = await asyncio.to_thread(self._write, filename, data)
        except OSError as exc:
            raise DependencyError(f"Could not write {filename}: {exc}") from exc
        log.debug("object_written", key=path.name, size=len(data))
        return StoredObject(key=path.name, location=str(path), kind=self.kind)

    async def delete(self, location: str) -> None:
        path = self._path_for(location)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            log.warning("object_already_missing", location=location)
        except OSError as exc:
            raise DependencyError(f"Could not delete {path.name}: {exc}") from exc

    def key_for(self, location: str) -> str:
        return Path(location).name

    def playback_url(self, location: str, base_url: str) -> str:
        return f"{base_url.rstrip('/')}{MEDIA_ROUTE}/{quote(self.key_for(location))}"

    def list_files(self) -> list[Path]:
        """Return the audio files currently in the folder, sorted by name."""
        if not self.folder.is_dir():
            return []
        return sorted(
            p for p in self.folder.iterdir() if p.is_file() and is_audio_filename(p.name)
        )


# ---------------------------------------------------------------------------
# Cloudinary
# ---------------------------------------------------------------------------


class CloudinaryObjectStore(ObjectStore):
    """Async Cloudinary client for audio uploads.

    Audio goes through the ``video`` resource type, which is how Cloudinary
    stores sound files.  Requests are signed with the API secret.
    """

    kind: StorageKind = "remote"

    def __init__(
        self,
        config: CloudinaryConfig,
        *,
        _transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = _transport
        self._client: httpx.AsyncClient | None = None

    @property
    def folder(self) -> str:
        return self._config.folder

    async def __aenter__(self) -> CloudinaryObjectStore:
        kw: dict = {"timeout": 60.0}
        if self._transport is not None:
            kw["transport"] = self._transport
        self._client = httpx.AsyncClient(**kw)
        return self

    async def __aexit__(self, *exc: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # -- signing --

    def sign(self, params: dict[str, str]) -> str:
        """Compute the Cloudinary request signature for *params*."""
        payload = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] != "")
        secret = self._config.api_secret.get_secret_value()
        return hashlib.sha1(f"{payload}{secret}".encode()).hexdigest()  # noqa: S324

    def _signed(self, params: dict[str, str]) -> dict[str, str]:
        params = {**params, "timestamp": str(int(time.time()))}
        return {**params, "signature": self.sign(params), "api_key": self._config.api_key}

    # -- request helper --

    async def _post(self, action: str, data: dict[str, str], files: dict | None = None) -> dict:
        assert self._client is not None  # noqa: S101
        url = f"{_API_BASE}/{self._config.cloud_name}/video/{action}"
        try:
            resp = await self._client.post(url, data=data, files=files)
        except httpx.TransportError as exc:
            raise DependencyError(f"Cloudinary {action} failed: {exc}") from exc

        if resp.status_code >= 400:
            try:
                detail = resp.json().get("error", {}).get("message", resp.text)
            except ValueError:
                detail = resp.text
            raise DependencyError(f"Cloudinary {action} error: {resp.status_code} {detail}")

        return resp.json()

    # -- public API --

    async def put(self, filename: str, data: bytes) -> StoredObject:
        result = await self._post(
            "upload",
            self._signed({"folder": self.folder}),
            files={"file": (Path(filename).name, data, "audio/mpeg")},
        )
        location = result.get("secure_url")
        if not location:
            raise DependencyError("Cloudinary upload returned no URL")
        key = result.get("public_id") or self.key_for(location)
        log.debug("object_uploaded", key=key, size=len(data))
        return StoredObject(key=key, location=location, kind=self.kind)

    async def delete(self, location: str) -> None:
        public_id = self.key_for(location)
        result = await self._post("destroy", self._signed({"public_id": public_id}))
        outcome = result.get("result")
        if outcome == "not found":
            log.warning("object_already_missing", key=public_id)
            return
        if outcome != "ok":
            raise DependencyError(f"Cloudinary could not delete {public_id}: {outcome}")

    def key_for(self, location: str) -> str:
        return public_id_from_url(location, self.folder)

    def playback_url(self, location: str, base_url: str) -> str:  # noqa: ARG002
        return location


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_object_store(config: AppConfig) -> ObjectStore:
    """Create the object store selected by ``STORAGE_TYPE``."""
    if config.storage.type == "remote":
        return CloudinaryObjectStore(config.storage.cloudinary)
    return LocalObjectStore(config.storage.songs_folder)
