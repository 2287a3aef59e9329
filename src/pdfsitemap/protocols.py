"""Protocol interfaces for swappable components.

SitemapService and the scanner reference these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight in-memory implementations
- Other cache backends to be swapped in without changing the service
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Hashable
    from datetime import timedelta
    from pathlib import Path

    from pdfsitemap.filesystem import FsEntry
    from pdfsitemap.models.cache import SitemapCacheEntry
    from pdfsitemap.models.sitemap import ScanResult


class CacheProtocol(Protocol):
    """Interface for the scan-result cache backend."""

    async def get_scan(self, key: str) -> SitemapCacheEntry | None: ...

    async def set_scan(self, key: str, result: ScanResult, ttl: timedelta) -> None: ...

    async def delete_scan(self, key: str) -> None: ...

    async def cleanup_expired(self) -> None: ...


class FileSystemProtocol(Protocol):
    """Interface for the directory listing used by the scanner."""

    def list_dir(self, path: Path) -> list[FsEntry]: ...

    def dir_identity(self, path: Path) -> Hashable: ...
