"""Filesystem access for the directory scanner.

The scanner only needs three facts about a directory entry (its name, whether
it is a directory, and its timestamps), so it talks to a ``FileSystemProtocol``
rather than to ``os`` directly. ``LocalFileSystem`` is the production
implementation; tests substitute an in-memory tree.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Hashable
    from pathlib import Path


@dataclass(frozen=True)
class FsEntry:
    name: str
    is_dir: bool
    mtime: float | None = None
    ctime: float | None = None


class LocalFileSystem:
    """Reads directories from the local disk with ``os.scandir``."""

    def list_dir(self, path: Path) -> list[FsEntry]:
        """List the entries of *path*. Raises ``OSError`` if it cannot be read."""
        entries: list[FsEntry] = []
        with os.scandir(path) as it:
            for item in it:
                is_dir = item.is_dir()  # Follows symlinks
                try:
                    st = item.stat()
                except OSError:
                    # Dangling symlink: listed, but without timestamps
                    entries.append(FsEntry(name=item.name, is_dir=is_dir))
                    continue
                entries.append(
                    FsEntry(
                        name=item.name,
                        is_dir=is_dir,
                        mtime=st.st_mtime,
                        ctime=st.st_ctime,
                    )
                )
        return entries

    def dir_identity(self, path: Path) -> Hashable:
        """Return ``(device, inode)`` so symlinked directories are recognised."""
        st = os.stat(path)
        return (st.st_dev, st.st_ino)
