from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from pdfsitemap.models.sitemap import ScanResult


class SitemapCacheEntry(BaseModel):
    """Cached scan result for one sitemap key."""

    model_config = ConfigDict(frozen=True)

    key: str
    result: ScanResult
    fetched_at: datetime
    expires_at: datetime
    stale: bool = False
