"""Cached sitemap service.

``SitemapService`` is constructed once per process and handed to whatever
serves the sitemap. It replaces the host framework's hooks with explicit
methods:

- ``get_sitemap`` / ``get_sitemap_document`` build (or reuse) the document
- ``get_index_entry`` supplies the sitemap-index row
- ``on_content_changed`` / ``invalidate`` discard the cached scan

A cache slot moves Empty -> Fresh on a scan and back to Empty when the TTL
elapses or the slot is invalidated. Rebuilds for one key are single-flight:
concurrent callers wait for the running scan and then read its result.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from pdfsitemap.errors import SitemapError
from pdfsitemap.models.sitemap import IndexLink, ScanResult, SitemapDocument
from pdfsitemap.scanner import scan
from pdfsitemap.sitemap import CACHE_MARKER, render_urlset, sort_entries, stylesheet_line

if TYPE_CHECKING:
    from collections.abc import Callable

    from pdfsitemap.config import Settings
    from pdfsitemap.models.sitemap import FileEntry
    from pdfsitemap.protocols import CacheProtocol, FileSystemProtocol

    EntryTransform = Callable[[list[FileEntry]], list[FileEntry]]

log = structlog.get_logger()


class SitemapService:
    """Serves one named sitemap from a cached directory scan."""

    def __init__(
        self,
        settings: Settings,
        cache: CacheProtocol,
        *,
        fs: FileSystemProtocol | None = None,
        transform: EntryTransform | None = None,
    ) -> None:
        self.settings = settings
        self._cache = cache
        self._fs = fs
        self._transform = transform
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        # Bumped on every invalidation; a scan that started before the bump
        # must not be stored.
        self._generations: defaultdict[str, int] = defaultdict(int)

    @property
    def key(self) -> str:
        return self.settings.sitemap.cache_key

    @property
    def ttl(self) -> timedelta:
        return timedelta(hours=self.settings.cache.ttl_hours)

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    async def get_sitemap(self) -> SitemapDocument:
        """Return the sitemap document, scanning only if no fresh entry exists.

        Raises ``SitemapError`` if a required scan fails.
        """
        result, from_cache = await self._load()
        document = self.render(result)
        if from_cache:
            document = CACHE_MARKER + document
        return SitemapDocument(
            document=document,
            latest_modified=result.latest_modified,
            from_cache=from_cache,
        )

    async def get_sitemap_document(self) -> str:
        """Host-facing variant of ``get_sitemap`` that never fails.

        A failed scan serves the previously cached result, even past its TTL,
        or an empty ``<urlset>`` when there is none.
        """
        try:
            body = (await self.get_sitemap()).document
        except SitemapError as exc:
            log.error(
                "sitemap_build_failed",
                key=self.key,
                code=exc.code,
                message=exc.message,
                recoverable=exc.recoverable,
            )
            cached = await self._cache.get_scan(self.key)
            if cached is not None:
                log.info("sitemap_served_stale", key=self.key, stale=cached.stale)
                body = CACHE_MARKER + self.render(cached.result)
            else:
                body = render_urlset([])

        xsl_url = self.settings.sitemap.stylesheet_url
        if xsl_url:
            return stylesheet_line(xsl_url) + "\n" + body
        return body

    def render(self, result: ScanResult) -> str:
        """Apply the entry transform, sort newest first, and serialise."""
        entries = list(result.entries)
        if self._transform is not None:
            entries = self._transform(entries)
        return render_urlset(sort_entries(entries))

    async def _load(self) -> tuple[ScanResult, bool]:
        key = self.key
        cached = await self._cache.get_scan(key)
        if cached is not None and not cached.stale:
            log.info("cache_hit", key=key)
            return cached.result, True

        async with self._locks[key]:
            # Another caller may have finished a rebuild while we waited.
            cached = await self._cache.get_scan(key)
            if cached is not None and not cached.stale:
                log.info("cache_hit", key=key, waited=True)
                return cached.result, True

            log.info("cache_miss", key=key, stale=cached is not None)
            generation = self._generations[key]
            result = await self._scan()
            if generation == self._generations[key]:
                await self._cache.set_scan(key, result, self.ttl)
            else:
                log.info("cache_write_skipped", key=key, reason="invalidated_during_scan")
            return result, False

    async def _scan(self) -> ScanResult:
        uploads = self.settings.uploads
        return await asyncio.to_thread(
            scan,
            Path(uploads.base_dir).expanduser(),
            uploads.base_url,
            self.settings.sitemap.extensions,
            self._fs,
        )

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    def index_url(self) -> str:
        site_url = self.settings.sitemap.site_url
        if not site_url.endswith("/"):
            site_url += "/"
        return f"{site_url}{self.settings.sitemap.name}-sitemap.xml"

    async def get_index_entry(self) -> IndexLink:
        """Sitemap-index row for this sitemap. Reads the cache, never scans."""
        cached = await self._cache.get_scan(self.key)
        lastmod = None
        if cached is not None and not cached.stale:
            lastmod = cached.result.latest_modified
        return IndexLink(loc=self.index_url(), lastmod=lastmod)

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    async def invalidate(self) -> None:
        """Discard the cached scan so the next request rebuilds."""
        key = self.key
        self._generations[key] += 1
        await self._cache.delete_scan(key)
        log.info("cache_invalidated", key=key)

    async def on_content_changed(self, item_id: object, mime_type: str | None) -> bool:
        """Invalidate when a newly added item's type matches an allowed extension.

        Matching is a case-insensitive substring test, so ``application/pdf``
        matches ``pdf``. Returns whether the cache was invalidated.
        """
        mime = (mime_type or "").lower()
        if not any(ext in mime for ext in self.settings.sitemap.extensions):
            log.debug("content_change_ignored", item_id=item_id, mime_type=mime_type)
            return False
        log.info("content_changed", item_id=item_id, mime_type=mime_type)
        await self.invalidate()
        return True
