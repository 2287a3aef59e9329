"""Recursive uploads-directory scanner.

Walks the root directory and every purely numeric descendant directory
(WordPress-style ``2024/05`` date buckets), collecting files whose extension
is on the allow-list. Non-numeric directories are never descended into, since
the upload handler does not create them.
"""

from __future__ import annotations

import os
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote

import structlog

from pdfsitemap.errors import ErrorCode, SitemapError
from pdfsitemap.filesystem import LocalFileSystem
from pdfsitemap.models.sitemap import FileEntry, ScanResult

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterable, Iterator

    from pdfsitemap.filesystem import FsEntry
    from pdfsitemap.protocols import FileSystemProtocol

log = structlog.get_logger()

_NUMERIC_DIR_RE = re.compile(r"[0-9]+")

# Fixed width so that string comparison orders timestamps chronologically.
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_timestamp(epoch_seconds: float) -> str:
    """Render a POSIX timestamp as a W3C datetime in UTC."""
    return datetime.fromtimestamp(epoch_seconds, UTC).strftime(TIMESTAMP_FORMAT)


def file_extension(name: str) -> str:
    """Return the lower-cased text after the last dot, or ``""``."""
    _, dot, ext = name.rpartition(".")
    return ext.lower() if dot else ""


def is_numeric_dir_name(name: str) -> bool:
    return _NUMERIC_DIR_RE.fullmatch(name) is not None


def _entry_timestamp(entry: FsEntry) -> str | None:
    # A zero or missing mtime falls back to the status-change time.
    stamp = entry.mtime or entry.ctime
    if not stamp:
        return None
    return format_timestamp(stamp)


def _join_url(base_url: str, segment: str) -> str:
    # Raw filesystem bytes, so undecodable names (surrogate escapes) still encode.
    return base_url + quote(os.fsencode(segment), safe="")


def _with_trailing_slash(url: str) -> str:
    return url if url.endswith("/") else url + "/"


def scan(
    root_dir: str | Path,
    root_url: str,
    allowed_extensions: Iterable[str],
    fs: FileSystemProtocol | None = None,
) -> ScanResult:
    """Scan *root_dir* and its numeric subdirectories for allowed files.

    *root_url* must mirror *root_dir* path-for-path. Returns every match in
    discovery order plus the newest timestamp seen.

    Raises ``SitemapError(DIRECTORY_UNREADABLE)`` if the root or any visited
    subdirectory cannot be listed. Nothing is returned for a failed scan.
    """
    fs = fs or LocalFileSystem()
    extensions = frozenset(ext.lower() for ext in allowed_extensions)
    entries: list[FileEntry] = []
    visited: set[Hashable] = set()

    # Depth-first over a stack of open listings, so a subdirectory's files are
    # discovered at the position where the subdirectory itself was listed.
    root = Path(root_dir)
    stack: list[tuple[Iterator[FsEntry], Path, str]] = [
        (iter(_read_dir(fs, root, visited) or []), root, _with_trailing_slash(root_url))
    ]
    directory_count = 1
    while stack:
        listing, directory, base_url = stack[-1]
        item = next(listing, None)
        if item is None:
            stack.pop()
            continue

        if item.name in (".", ".."):
            continue

        if item.is_dir:
            if is_numeric_dir_name(item.name):
                subdir = directory / item.name
                children = _read_dir(fs, subdir, visited)
                if children is not None:
                    directory_count += 1
                    sub_url = _with_trailing_slash(_join_url(base_url, item.name))
                    stack.append((iter(children), subdir, sub_url))
            continue

        if file_extension(item.name) not in extensions:
            continue

        modified_at = _entry_timestamp(item)
        if modified_at is None:
            log.warning("scan_entry_without_timestamp", path=str(directory / item.name))
            continue

        entries.append(FileEntry(url=_join_url(base_url, item.name), modified_at=modified_at))

    latest = max((e.modified_at for e in entries), default=None)
    log.info(
        "scan_complete",
        root_dir=str(root_dir),
        directories=directory_count,
        files=len(entries),
        latest_modified=latest,
    )
    return ScanResult(entries=tuple(entries), latest_modified=latest)


def _read_dir(
    fs: FileSystemProtocol, directory: Path, visited: set[Hashable]
) -> list[FsEntry] | None:
    """List *directory*, or return ``None`` if it was already visited."""
    try:
        identity = fs.dir_identity(directory)
        if identity in visited:
            log.warning("scan_directory_cycle", path=str(directory))
            return None
        visited.add(identity)
        return fs.list_dir(directory)
    except OSError as exc:
        raise SitemapError(
            code=ErrorCode.DIRECTORY_UNREADABLE,
            message=f"Cannot read directory '{directory}': {exc.strerror or exc}",
            suggestion="Check that the uploads directory exists and is readable.",
            recoverable=True,
        ) from exc
