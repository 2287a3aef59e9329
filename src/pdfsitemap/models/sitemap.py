from __future__ import annotations

from pydantic import BaseModel, ConfigDict, model_validator


class FileEntry(BaseModel):
    """A single file listed in the sitemap."""

    model_config = ConfigDict(frozen=True)

    url: str  # Absolute, percent-encoded per path segment
    modified_at: str  # "YYYY-MM-DDTHH:MM:SSZ"


class ScanResult(BaseModel):
    """Everything one directory scan found, in discovery order."""

    model_config = ConfigDict(frozen=True)

    entries: tuple[FileEntry, ...] = ()
    latest_modified: str | None = None  # None when no files matched

    @model_validator(mode="after")
    def _check_latest_modified(self) -> ScanResult:
        expected = max((e.modified_at for e in self.entries), default=None)
        if self.latest_modified != expected:
            raise ValueError(
                f"latest_modified {self.latest_modified!r} does not match entries ({expected!r})"
            )
        return self


class SitemapDocument(BaseModel):
    """Serialised sitemap plus the index-level last-modified hint."""

    document: str
    latest_modified: str | None = None
    from_cache: bool = False


class IndexLink(BaseModel):
    """One row of the host's sitemap index."""

    loc: str
    lastmod: str | None = None
