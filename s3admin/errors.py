from __future__ import annotations

from typing import Optional


class S3AdminError(Exception):
    pass


class ListingError(S3AdminError):
    """A page or flat listing could not be fetched."""


class DeleteError(S3AdminError):
    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.key = key


class CrawlAbandoned(S3AdminError):
    """Raised inside a prefetch crawl whose generation was superseded."""
