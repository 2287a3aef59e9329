"""Scan-result cache backends.

All cache operations catch backend errors internally and degrade gracefully:
read failures return ``None`` (treated as cache miss by callers), write and
delete failures are logged and ignored (the freshly scanned result is still
served). A cache backend that is down therefore behaves like a permanent
miss: every request rebuilds. Errors are logged with ``exc_info=True`` so they
remain observable.

Each key holds exactly one row, written whole with ``INSERT OR REPLACE``.
Readers see either the previous entry or the new one, never a mix.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from pdfsitemap.errors import ErrorCode
from pdfsitemap.models.cache import SitemapCacheEntry
from pdfsitemap.models.sitemap import ScanResult

if TYPE_CHECKING:
    from collections.abc import Callable

log = structlog.get_logger()

_CREATE_SITEMAP_TABLE = """
CREATE TABLE IF NOT EXISTS sitemap_cache (
    key              TEXT PRIMARY KEY,
    result           TEXT NOT NULL,
    latest_modified  TEXT,
    fetched_at       TEXT NOT NULL,
    expires_at       TEXT NOT NULL
)
"""

_CREATE_SITEMAP_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_sitemap_expires ON sitemap_cache(expires_at)"
)

# Expired rows are kept this long so a failed rebuild can still serve them.
STALE_RETENTION = timedelta(days=7)


def utcnow() -> datetime:
    return datetime.now(UTC)


class Cache:
    """SQLite-backed scan cache implementing CacheProtocol."""

    def __init__(self, db: aiosqlite.Connection, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._db = db
        self._clock = clock

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_SITEMAP_TABLE)
        await self._db.execute(_CREATE_SITEMAP_INDEX)
        await self._db.commit()

    async def get_scan(self, key: str) -> SitemapCacheEntry | None:
        """Read a cached scan. Returns ``None`` on cache miss or read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT key, result, fetched_at, expires_at FROM sitemap_cache WHERE key = ?",
                (key,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None

            fetched_at = datetime.fromisoformat(row[2])
            expires_at = datetime.fromisoformat(row[3])

            return SitemapCacheEntry(
                key=row[0],
                result=ScanResult.model_validate_json(row[1]),
                fetched_at=fetched_at,
                expires_at=expires_at,
                stale=self._clock() > expires_at,
            )
        except aiosqlite.Error:
            log.warning(
                "cache_read_error",
                key=key,
                code=ErrorCode.CACHE_STORE_UNAVAILABLE,
                exc_info=True,
            )
            return None
        except ValueError:
            # Row written by an incompatible version; rebuild instead.
            log.warning("cache_entry_invalid", key=key, exc_info=True)
            return None

    async def set_scan(self, key: str, result: ScanResult, ttl: timedelta) -> None:
        """Write a scan result, replacing any previous one. Non-fatal on failure."""
        try:
            now = self._clock()
            expires_at = now + ttl
            await self._db.execute(
                "INSERT OR REPLACE INTO sitemap_cache "
                "(key, result, latest_modified, fetched_at, expires_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    key,
                    result.model_dump_json(),
                    result.latest_modified,
                    now.isoformat(),
                    expires_at.isoformat(),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning(
                "cache_write_error",
                key=key,
                code=ErrorCode.CACHE_STORE_UNAVAILABLE,
                exc_info=True,
            )

    async def delete_scan(self, key: str) -> None:
        """Drop the entry for *key*. Non-fatal on failure."""
        try:
            await self._db.execute("DELETE FROM sitemap_cache WHERE key = ?", (key,))
            await self._db.commit()
        except aiosqlite.Error:
            log.warning(
                "cache_delete_error",
                key=key,
                code=ErrorCode.CACHE_STORE_UNAVAILABLE,
                exc_info=True,
            )

    async def cleanup_expired(self) -> None:
        """Delete entries expired longer than STALE_RETENTION ago. Non-fatal on failure."""
        try:
            cutoff = (self._clock() - STALE_RETENTION).isoformat()
            cursor = await self._db.execute(
                "DELETE FROM sitemap_cache WHERE expires_at < ?", (cutoff,)
            )
            deleted = cursor.rowcount
            await self._db.commit()
            log.info("cache_cleanup_complete", deleted=deleted)
        except aiosqlite.Error:
            log.warning("cache_cleanup_error", exc_info=True)


class MemoryCache:
    """Process-local scan cache implementing CacheProtocol.

    Entries are immutable models, so replacing the dict value is the whole
    write; there is nothing to lock.
    """

    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._entries: dict[str, SitemapCacheEntry] = {}
        self._clock = clock

    async def get_scan(self, key: str) -> SitemapCacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stale = self._clock() > entry.expires_at
        if stale == entry.stale:
            return entry
        return entry.model_copy(update={"stale": stale})

    async def set_scan(self, key: str, result: ScanResult, ttl: timedelta) -> None:
        now = self._clock()
        self._entries[key] = SitemapCacheEntry(
            key=key,
            result=result,
            fetched_at=now,
            expires_at=now + ttl,
        )

    async def delete_scan(self, key: str) -> None:
        self._entries.pop(key, None)

    async def cleanup_expired(self) -> None:
        cutoff = self._clock() - STALE_RETENTION
        expired = [key for key, entry in self._entries.items() if entry.expires_at < cutoff]
        for key in expired:
            del self._entries[key]
        log.info("cache_cleanup_complete", deleted=len(expired))
