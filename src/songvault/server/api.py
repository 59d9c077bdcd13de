"""HTTP API for the SongVault catalog."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.datastructures import UploadFile

from songvault.catalog import UploadedFile
from songvault.errors import ConflictError, SongVaultError, ValidationError
from songvault.logging import REQUEST_ID_HEADER, request_context
from songvault.objects import MEDIA_ROUTE, LocalObjectStore

if TYPE_CHECKING:
    from songvault.catalog import CatalogService
    from songvault.config import AppConfig

log = structlog.get_logger(__name__)

BANNER = "Server is running. Use the API to upload and access music."

_UPLOAD_FIELDS = ("files[]", "files")


async def _read_uploads(request: Request, fields: tuple[str, ...]) -> list[UploadedFile]:
    """Read every file posted under one of *fields* from a multipart body."""
    form = await request.form()
    uploads: list[UploadedFile] = []
    try:
        for name in fields:
            for item in form.getlist(name):
                if not isinstance(item, UploadFile) or not item.filename:
                    continue
                uploads.append(UploadedFile(filename=item.filename, data=await item.read()))
    finally:
        await form.close()
    return uploads


def create_app(service: CatalogService, config: AppConfig) -> FastAPI:
    """Build the FastAPI application around an already-wired catalog service."""
    app = FastAPI(title="songvault", docs_url=None, redoc_url=None)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.middleware("http")
    async def bind_request(request: Request, call_next):  # noqa: ANN001, ANN202
        with request_context(
            request.method, request.url.path, request.headers.get(REQUEST_ID_HEADER)
        ) as request_id:
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    # -- error envelope -------------------------------------------------------

    @app.exception_handler(SongVaultError)
    async def songvault_error_handler(request: Request, exc: SongVaultError) -> JSONResponse:
        if exc.status_code >= 500:
            log.error("request_failed", path=request.url.path, error=exc.message)
        else:
            log.info("request_rejected", path=request.url.path, status=exc.status_code, error=exc.message)
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        log.exception("unhandled_error", path=request.url.path)
        return JSONResponse({"error": "Internal Server Error"}, status_code=500)

    # -- REST endpoints -------------------------------------------------------

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return BANNER

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "storage": config.storage.type,
            "songs": await service.db.count_songs(),
        }

    @app.post("/upload-songs", status_code=201)
    async def upload_songs(request: Request) -> dict:
        files = await _read_uploads(request, _UPLOAD_FIELDS)
        songs = await service.ingest(files)
        return {
            "message": f"{len(songs)} file(s) uploaded successfully!",
            "songs": [service.to_public(s) for s in songs],
        }

    @app.post("/upload-song", status_code=201)
    async def upload_song(request: Request) -> dict:
        files = await _read_uploads(request, ("file",))
        if len(files) > 1:
            raise ValidationError("Send a single file, or use /upload-songs")
        songs = await service.ingest(files)
        return {"message": "File uploaded successfully!", "song": service.to_public(songs[0])}

    async def list_music() -> list[dict]:
        songs = await service.list_songs()
        return [s.model_dump(by_alias=True) for s in songs]

    app.add_api_route("/musics", list_music, methods=["GET"])
    app.add_api_route("/music", list_music, methods=["GET"])

    @app.delete("/songs/{song_id}")
    async def delete_song(song_id: str) -> dict:
        with structlog.contextvars.bound_contextvars(song_id=song_id):
            song = await service.remove(song_id)
        return {"message": f"Song '{song.title}' deleted successfully!"}

    @app.post("/resync", status_code=201)
    async def resync() -> dict:
        result = await service.resync()
        if result.nothing_to_do:
            raise ConflictError("All songs are already in the catalog")
        return {
            "message": f"{len(result.added)} song(s) added to the catalog",
            "songs": [service.to_public(s) for s in result.added],
        }

    # -- Static audio (local storage only) --------------------------------------

    if isinstance(service.objects, LocalObjectStore):
        app.mount(
            MEDIA_ROUTE,
            StaticFiles(directory=str(service.objects.folder), check_dir=False),
            name="media",
        )

    return app
