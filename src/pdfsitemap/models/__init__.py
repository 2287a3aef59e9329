from __future__ import annotations

from pdfsitemap.models.cache import SitemapCacheEntry
from pdfsitemap.models.sitemap import FileEntry, IndexLink, ScanResult, SitemapDocument

__all__ = [
    # sitemap
    "FileEntry",
    "ScanResult",
    "SitemapDocument",
    "IndexLink",
    # cache
    "SitemapCacheEntry",
]
