"""On-demand page loading against the sparse cache."""
import logging
from typing import List, Optional

from catalog_cache.errors import CatalogError, PageFetchFailed
from catalog_cache.models import CatalogKind, Record
from catalog_cache.store import CacheStore

logger = logging.getLogger(__name__)


class PageLoader:
    """Serves single pages from the cache, fetching exactly the missing window."""

    def __init__(self, store: CacheStore, client):
        """
        Args:
            store: Shared cache
            client: Anything with ``async fetch_page(kind, offset, limit)``
        """
        self.store = store
        self.client = client

    async def load_page(self, kind: CatalogKind, page_index: int, page_size: int) -> List[Record]:
        """
        Return page ``page_index`` (0-based) of ``page_size`` records.

        A resident page is returned without a request. Otherwise one request
        for ``[offset, offset+page_size)``, clamped to the known total, is made
        and its records are written into the cache.
        The bulk loader is never started or awaited here.

        Raises:
            PageFetchFailed: The request failed; the cache is left as it was
        """
        if page_index < 0 or page_size <= 0:
            return []

        offset = page_index * page_size
        total = self.store.total_count(kind)
        if total is not None and offset >= total:
            return []

        count = page_size if total is None else min(page_size, total - offset)
        if self.store.is_resident(kind, offset, count):
            return self.store.read_range(kind, offset, count)

        logger.info(f"Loading {kind.value} page {page_index} [{offset}, {offset + count})")
        try:
            page = await self.client.fetch_page(kind, offset, count)
        except CatalogError as e:
            raise PageFetchFailed(kind, offset, count, e) from e

        self.store.set_total_count(kind, page.total_count)
        self.store.write(kind, offset, page.records)
        return list(page.records)


class PageView:
    """
    Observable page cursor for one collection.

    ``records`` always holds the last page that loaded successfully, so a
    consumer keeps showing it while a new page is in flight or after a
    failure.
    """

    def __init__(self, loader: PageLoader, kind: CatalogKind, page_size: int = 10):
        self.loader = loader
        self.kind = kind
        self.page_index = 0
        self.page_size = page_size
        self.records: List[Record] = []
        self.loading = False
        self.error: Optional[CatalogError] = None
        self._request_seq = 0

    async def show(self, page_index: int, page_size: Optional[int] = None) -> List[Record]:
        """
        Load a page and make it current.

        A response that arrives after a newer ``show`` call was started is
        dropped; the records of the newer call win.
        """
        size = page_size or self.page_size
        self._request_seq += 1
        seq = self._request_seq
        self.loading = True

        try:
            records = await self.loader.load_page(self.kind, page_index, size)
        except PageFetchFailed as e:
            if seq == self._request_seq:
                self.error = e
                self.loading = False
            raise

        if seq != self._request_seq:
            logger.debug(f"Dropping stale {self.kind.value} page {page_index}")
            return self.records

        self.page_index = page_index
        self.page_size = size
        self.records = records
        self.error = None
        self.loading = False
        return records

    async def next(self) -> List[Record]:
        return await self.show(self.page_index + 1)

    async def previous(self) -> List[Record]:
        return await self.show(max(0, self.page_index - 1))

    @property
    def page_count(self) -> Optional[int]:
        """Number of pages, once the total is known."""
        total = self.loader.store.total_count(self.kind)
        if total is None:
            return None
        return (total + self.page_size - 1) // self.page_size
