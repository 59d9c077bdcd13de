"""Foreground server process: wires the stores into the API and runs uvicorn."""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack

import structlog
import uvicorn

from songvault.catalog import CatalogService
from songvault.config import AppConfig
from songvault.objects import LocalObjectStore, build_object_store
from songvault.server.api import create_app
from songvault.storage import Database

log = structlog.get_logger(__name__)


async def serve(config: AppConfig) -> None:
    """Connect the stores, serve HTTP until interrupted, then close the stores."""
    async with AsyncExitStack() as stack:
        db = Database(config.storage.database_path)
        await db.connect()
        stack.push_async_callback(db.close)

        objects = await stack.enter_async_context(build_object_store(config))
        if isinstance(objects, LocalObjectStore):
            objects.folder.mkdir(parents=True, exist_ok=True)

        service = CatalogService(
            db,
            objects,
            public_base_url=config.server.base_url,
            max_files=config.server.max_upload_files,
        )
        app = create_app(service, config)

        server_config = uvicorn.Config(
            app,
            host=config.server.host,
            port=config.server.port,
            log_level=config.server.log_level.lower(),
            log_config=None,
            loop="asyncio",
        )
        server = uvicorn.Server(server_config)

        log.info(
            "server_starting",
            host=config.server.host,
            port=config.server.port,
            storage=config.storage.type,
            database=str(config.storage.database_path),
        )
        await server.serve()
        log.info("server_stopped")


def run(config: AppConfig) -> None:
    asyncio.run(serve(config))
