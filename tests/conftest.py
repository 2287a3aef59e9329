"""Shared test fixtures for the pdfsitemap test suite."""

from __future__ import annotations

import os
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite
import pytest

from pdfsitemap.cache import Cache
from pdfsitemap.config import Settings
from pdfsitemap.filesystem import FsEntry


def epoch(iso: str) -> float:
    """``"2023-05-01T00:00:00Z"`` -> POSIX seconds."""
    return datetime.strptime(iso, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=UTC).timestamp()


class MemoryFileSystem:
    """In-memory directory tree implementing FileSystemProtocol.

    Paths map to the list of entries they contain, in listing order. Paths
    missing from the map (or listed in ``unreadable``) raise like os.scandir.
    """

    def __init__(self) -> None:
        self.dirs: dict[Path, list[FsEntry]] = {}
        self.unreadable: set[Path] = set()
        self.aliases: dict[Path, Path] = {}
        self.list_calls = 0

    def add_dir(self, path: str | Path) -> Path:
        """Create *path* and any missing parents, each listed in its parent."""
        path = Path(path)
        if path in self.dirs:
            return path
        self.dirs[path] = []
        parent = path.parent
        if parent != Path(path.anchor):
            self.add_dir(parent)
            self.dirs[parent].append(FsEntry(name=path.name, is_dir=True))
        return path

    def add_file(
        self,
        path: str | Path,
        modified: str | None = None,
        *,
        created: str | None = None,
    ) -> None:
        path = Path(path)
        self.add_dir(path.parent)
        self.dirs[path.parent].append(
            FsEntry(
                name=path.name,
                is_dir=False,
                mtime=epoch(modified) if modified else None,
                ctime=epoch(created) if created else None,
            )
        )

    def add_symlink_dir(self, path: str | Path, target: str | Path) -> None:
        """Register *path* as a directory symlink resolving to *target*."""
        path = Path(path)
        self.add_dir(path)
        self.aliases[path] = Path(target)

    def _resolve(self, path: Path) -> Path:
        return self.aliases.get(path, path)

    def list_dir(self, path: Path) -> list[FsEntry]:
        self.list_calls += 1
        real = self._resolve(path)
        if real in self.unreadable:
            raise PermissionError(13, "Permission denied", str(path))
        if real not in self.dirs:
            raise FileNotFoundError(2, "No such file or directory", str(path))
        return list(self.dirs[real])

    def dir_identity(self, path: Path) -> Path:
        real = self._resolve(path)
        if real not in self.dirs:
            raise FileNotFoundError(2, "No such file or directory", str(path))
        return real


def _write_upload(root: Path, relative: str, modified: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"%PDF-1.4\n")
    stamp = epoch(modified)
    os.utime(path, (stamp, stamp))
    return path


@pytest.fixture()
def memory_fs() -> MemoryFileSystem:
    fs = MemoryFileSystem()
    fs.add_dir("/uploads")
    return fs


@pytest.fixture()
def uploads_dir(tmp_path: Path) -> Path:
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture()
def settings(uploads_dir: Path) -> Settings:
    return Settings(
        uploads={
            "base_dir": str(uploads_dir),
            "base_url": "https://example.com/wp-content/uploads",
        },
        sitemap={"site_url": "https://example.com"},
        cache={"backend": "memory"},
    )


@pytest.fixture()
async def cache() -> Cache:
    async with aiosqlite.connect(":memory:") as db:
        cache = Cache(db)
        await cache.init_db()
        yield cache


@pytest.fixture()
def write_upload(uploads_dir: Path):
    """Factory: ``write_upload("2023/05/report.pdf", "2023-05-01T00:00:00Z")``."""

    def _write(relative: str, modified: str) -> Path:
        return _write_upload(uploads_dir, relative, modified)

    return _write
