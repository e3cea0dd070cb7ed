"""Error taxonomy for catalog fetching and searching."""
from typing import Optional


class CatalogError(Exception):
    """Base class for every error raised by the catalog core."""


class NotFound(CatalogError):
    """A single author or title lookup missed."""


class CatalogRequestError(CatalogError):
    """A remote request failed (transport error or unexpected HTTP status)."""
    
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimited(CatalogRequestError):
    """The remote API kept answering 429 after all retries."""


class _RangeFetchFailed(CatalogError):
    """Shared shape of batch and page failures."""
    
    def __init__(self, kind, offset: int, limit: int, cause: Exception):
        super().__init__(f"{kind.value} [{offset}, {offset + limit}) failed: {cause}")
        self.kind = kind
        self.offset = offset
        self.limit = limit
        self.cause = cause
    
    @property
    def rate_limited(self) -> bool:
        return isinstance(self.cause, RateLimited)


class BatchFetchFailed(_RangeFetchFailed):
    """One bulk-loader batch failed; recorded, the run goes on."""


class PageFetchFailed(_RangeFetchFailed):
    """An on-demand page request failed."""


class CatalogIncomplete(CatalogError):
    """Bulk loading finished with gaps, so a full-catalog query can't be answered."""
    
    def __init__(self, kind):
        super().__init__(f"{kind.value} catalog is incomplete; search needs the full catalog")
        self.kind = kind
