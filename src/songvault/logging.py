"""Structured logging for the SongVault server.

Every event goes through structlog and the stdlib bridge, so uvicorn's own
records and ours end up in the same places:

- stderr, when ``songvault serve`` runs in the foreground
- ``server.log`` under ``LOG_DIR``, human-readable
- ``catalog.log`` under ``LOG_DIR``, one JSON object per catalog event

Request handlers bind ``request_id``, ``method`` and ``path`` with
:func:`request_context`; those keys are merged into every event logged while
the request is served, which is what ties a ``catalog.log`` line back to the
HTTP call that caused it.
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog

CATALOG_LOGGER = "songvault.catalog"
REQUEST_ID_HEADER = "X-Request-ID"

_ROTATE_BYTES = 10 * 1024 * 1024
_ROTATE_KEEP = 5
_QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "httpx", "httpcore")

_pre_chain: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.ExtraAdder(),
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
]


@contextmanager
def request_context(method: str, path: str, request_id: str | None = None) -> Iterator[str]:
    """Bind the current request to every event logged inside the block.

    Yields the request id, generated when the client did not send one.
    """
    request_id = request_id or uuid.uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(request_id=request_id, method=method, path=path):
        yield request_id


def _formatter(*processors: structlog.types.Processor) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *processors],
        foreign_pre_chain=_pre_chain,
    )


def _rotating(path: Path, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=_ROTATE_BYTES, backupCount=_ROTATE_KEEP, encoding="utf-8")
    handler.setFormatter(formatter)
    return handler


def _log_unhandled(exc_type: type[BaseException], exc_value: BaseException, exc_tb: object) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_tb)  # type: ignore[arg-type]
        return
    logging.getLogger("songvault").critical("Unhandled exception", exc_info=(exc_type, exc_value, exc_tb))


def setup_logging(
    log_level: str = "info",
    log_dir: Path | None = None,
    *,
    console: bool = False,
) -> None:
    """(Re)configure logging; safe to call again once the real config is known.

    *log_level* is a stdlib level name, case-insensitive.  Without *log_dir*
    no files are written; *console* adds a stderr handler.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[*_pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    human = _formatter(structlog.dev.ConsoleRenderer(colors=False))
    handlers: list[logging.Handler] = []

    if console:
        stderr = logging.StreamHandler(sys.stderr)
        stderr.setFormatter(human)
        handlers.append(stderr)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(_rotating(log_dir / "server.log", human))

        catalog = _rotating(
            log_dir / "catalog.log",
            _formatter(structlog.processors.format_exc_info, structlog.processors.JSONRenderer()),
        )
        catalog.addFilter(logging.Filter(CATALOG_LOGGER))
        handlers.append(catalog)

    root = logging.getLogger()
    root.handlers[:] = handlers
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    sys.excepthook = _log_unhandled  # type: ignore[assignment]
