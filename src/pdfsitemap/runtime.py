"""Process wiring for embedding applications.

Responsibilities (and nothing more):
- Configure structlog
- Open the configured cache backend
- Construct the single SitemapService for the process and close it again
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog
from pydantic import ValidationError

from pdfsitemap import __version__
from pdfsitemap.cache import Cache, MemoryCache
from pdfsitemap.config import Settings
from pdfsitemap.errors import ErrorCode, SitemapError
from pdfsitemap.service import SitemapService

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from pdfsitemap.protocols import FileSystemProtocol
    from pdfsitemap.service import EntryTransform

log = structlog.get_logger()


def setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # stdout belongs to the host application
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def open_service(
    settings: Settings | None = None,
    *,
    transform: EntryTransform | None = None,
    fs: FileSystemProtocol | None = None,
) -> AsyncGenerator[SitemapService, None]:
    """Create and tear down the sitemap service and its cache backend."""
    if settings is None:
        settings = load_settings()
    setup_logging(settings)

    log.info(
        "sitemap_service_starting",
        version=__version__,
        sitemap=settings.sitemap.name,
        cache_backend=settings.cache.backend,
    )

    db: aiosqlite.Connection | None = None
    if settings.cache.backend == "sqlite":
        # None when the store is unavailable; the memory cache stands in.
        db = await _connect(settings)
    cache = Cache(db) if db is not None else MemoryCache()

    try:
        await cache.cleanup_expired()
        yield SitemapService(settings, cache, fs=fs, transform=transform)
    finally:
        if db is not None:
            await db.close()
        log.info("sitemap_service_stopping")


async def _connect(settings: Settings) -> aiosqlite.Connection | None:
    """Open and initialise the SQLite cache database, or return None."""
    db_path = Path(settings.cache.db_path).expanduser()
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(db_path))
    except (OSError, aiosqlite.Error):
        log.warning(
            "cache_store_unavailable",
            db_path=str(db_path),
            code=ErrorCode.CACHE_STORE_UNAVAILABLE,
            exc_info=True,
        )
        return None

    try:
        await Cache(db).init_db()
    except aiosqlite.Error:
        log.warning(
            "cache_store_unavailable",
            db_path=str(db_path),
            code=ErrorCode.CACHE_STORE_UNAVAILABLE,
            exc_info=True,
        )
        await db.close()
        return None
    return db


def load_settings() -> Settings:
    """Load settings from the environment and config file.

    Raises ``SitemapError(INVALID_CONFIG)`` when a value fails validation.
    """
    try:
        return Settings()
    except ValidationError as exc:
        raise SitemapError(
            code=ErrorCode.INVALID_CONFIG,
            message=f"Invalid pdfsitemap configuration ({exc.error_count()} error(s)): {exc}",
            suggestion="Check the PDFSITEMAP__* environment variables and pdfsitemap.yaml.",
            recoverable=False,
        ) from exc
