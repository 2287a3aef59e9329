from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    DIRECTORY_UNREADABLE = "DIRECTORY_UNREADABLE"
    CACHE_STORE_UNAVAILABLE = "CACHE_STORE_UNAVAILABLE"
    INVALID_CONFIG = "INVALID_CONFIG"


class SitemapError(Exception):
    """Raised for all expected failure conditions while building a sitemap.

    The scanner raises it when a directory cannot be read; the whole scan is
    abandoned and no partial result is produced. ``SitemapService`` decides
    whether the host sees the error or a degraded document.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }
