"""HTTP client for a running SongVault server."""

from __future__ import annotations

from pathlib import Path

import httpx
import structlog

from songvault.player.state import PlayerState, Track, failed, loaded

log = structlog.get_logger(__name__)

DEFAULT_SERVER_URL = "http://localhost:3000"


class ServerError(Exception):
    """The server could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CatalogClient:
    """Thin synchronous wrapper over the SongVault REST API."""

    def __init__(
        self,
        base_url: str = DEFAULT_SERVER_URL,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        kw: dict = {"base_url": base_url.rstrip("/"), "timeout": timeout}
        if transport is not None:
            kw["transport"] = transport
        self._client = httpx.Client(**kw)

    def __enter__(self) -> CatalogClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, url: str, **kwargs: object) -> httpx.Response:
        try:
            resp = self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise ServerError(f"Could not reach {self._client.base_url}: {exc}") from exc
        if resp.status_code >= 400:
            try:
                message = resp.json().get("error", resp.text)
            except ValueError:
                message = resp.text
            raise ServerError(message, status_code=resp.status_code)
        return resp

    # -- public API --

    def list_songs(self) -> list[Track]:
        resp = self._request("GET", "/musics")
        return [Track.from_api(item) for item in resp.json()]

    def upload(self, paths: list[Path]) -> dict:
        handles = [p.open("rb") for p in paths]
        try:
            files = [("files[]", (p.name, fh, "audio/mpeg")) for p, fh in zip(paths, handles)]
            return self._request("POST", "/upload-songs", files=files).json()
        finally:
            for fh in handles:
                fh.close()

    def delete(self, song_id: str) -> dict:
        return self._request("DELETE", f"/songs/{song_id}").json()

    def resync(self) -> dict:
        return self._request("POST", "/resync").json()


def fetch_state(client: CatalogClient, state: PlayerState | None = None) -> PlayerState:
    """Load the catalog into a player state; failures become a visible error."""
    state = state or PlayerState()
    try:
        songs = client.list_songs()
    except ServerError as exc:
        log.warning("catalog_fetch_failed", error=str(exc))
        return failed(state, f"Error fetching songs: {exc}")
    return loaded(state, songs)
