"""XML sitemap serialisation.

Produces the ``<urlset>`` document byte-for-byte in the layout search engine
consumers (and the companion XSL stylesheet) expect. The namespace must match
the stylesheet's exactly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from xml.sax.saxutils import escape, quoteattr

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pdfsitemap.models.sitemap import FileEntry

SITEMAP_NAMESPACE = "https://www.sitemaps.org/schemas/sitemap/0.9"
CACHE_MARKER = "<!-- Served from cache -->\n"


def sort_entries(entries: Iterable[FileEntry]) -> list[FileEntry]:
    """Newest first. Stable, so equal timestamps keep their relative order."""
    return sorted(entries, key=lambda e: e.modified_at, reverse=True)


def render_urlset(entries: Iterable[FileEntry]) -> str:
    """Serialise *entries* in the order given."""
    parts = [f'<urlset xmlns="{SITEMAP_NAMESPACE}">\n']
    for entry in entries:
        parts.append("<url>\n")
        parts.append(f"\t<loc>{escape(entry.url)}</loc>\n")
        parts.append(f"\t<lastmod>{escape(entry.modified_at)}</lastmod>\n")
        parts.append("</url>\n")
    parts.append("</urlset>")
    return "".join(parts)


def stylesheet_line(xsl_url: str) -> str:
    """Processing instruction that attaches an XSL stylesheet to the document."""
    return f"<?xml-stylesheet type=\"text/xsl\" href={quoteattr(xsl_url)}?>"
