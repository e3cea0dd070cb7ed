"""Explicitly constructed owner of one cache and the components sharing it."""
import logging
from typing import Iterable, List, Optional

from catalog_cache.async_client import AsyncCatalogClient
from catalog_cache.bulk_loader import BulkLoader, ProgressCallback
from catalog_cache.config import Config
from catalog_cache.models import Author, CatalogKind, Title
from catalog_cache.page_loader import PageLoader, PageView
from catalog_cache.search import SearchEngine
from catalog_cache.store import CacheStore

logger = logging.getLogger(__name__)


class CatalogSession:
    """
    One browsing session: a cache store plus the loaders and the search
    engine that all hold a reference to it. Discarding the session discards
    the cache.
    """

    def __init__(
        self,
        client,
        store: Optional[CacheStore] = None,
        batch_size: int = 500,
        batch_delay: float = 1.0,
        total_estimates=None,
        lucky_fallback_ceiling: int = 10000,
        on_progress: Optional[ProgressCallback] = None,
        rng=None,
        sleep=None
    ):
        self.client = client
        self.store = store or CacheStore()
        loader_kwargs = {"sleep": sleep} if sleep else {}
        self.bulk_loader = BulkLoader(
            self.store,
            client,
            batch_size=batch_size,
            delay=batch_delay,
            total_estimates=total_estimates,
            on_progress=on_progress,
            **loader_kwargs
        )
        self.page_loader = PageLoader(self.store, client)
        self.search = SearchEngine(
            self.store,
            self.bulk_loader,
            self.page_loader,
            lucky_fallback_ceiling=lucky_fallback_ceiling,
            rng=rng
        )

    @classmethod
    def from_config(cls, config: Config, on_progress: Optional[ProgressCallback] = None) -> "CatalogSession":
        """Build a session talking to the live API."""
        client = AsyncCatalogClient(
            api_key=config.PRH_API_KEY,
            base_url=config.PRH_API_BASE_URL,
            timeout=config.DEFAULT_TIMEOUT,
            max_retries=config.DEFAULT_MAX_RETRIES,
            base_backoff=config.BASE_BACKOFF
        )
        return cls(
            client,
            batch_size=config.BULK_BATCH_SIZE,
            batch_delay=config.BULK_BATCH_DELAY,
            total_estimates={
                CatalogKind.AUTHORS: config.AUTHORS_TOTAL_ESTIMATE,
                CatalogKind.TITLES: config.TITLES_TOTAL_ESTIMATE,
            },
            lucky_fallback_ceiling=config.LUCKY_FALLBACK_CEILING,
            on_progress=on_progress
        )

    def page_view(self, kind: CatalogKind, page_size: int = 10) -> PageView:
        return PageView(self.page_loader, kind, page_size)

    def preload(self, kinds: Iterable[CatalogKind] = tuple(CatalogKind)) -> List:
        """Start background bulk loads; returns the running tasks."""
        tasks = []
        for kind in kinds:
            task = self.bulk_loader.start(kind)
            if task is not None:
                tasks.append(task)
        return tasks

    async def get_author(self, author_id: str) -> Author:
        """
        Cached author, or fetch it.

        Raises:
            NotFound: Unknown author id
        """
        cached = self.store.find(CatalogKind.AUTHORS, author_id)
        if cached is not None:
            return cached
        return await self.client.get_author(author_id)

    async def get_title(self, isbn: str) -> Title:
        """
        Cached title, or fetch it.

        Raises:
            NotFound: Unknown ISBN
        """
        cached = self.store.find(CatalogKind.TITLES, isbn)
        if cached is not None:
            return cached
        return await self.client.get_title(isbn)

    async def titles_for_author(self, author_id: str, offset: int = 0, limit: int = 50) -> List[Title]:
        """Titles listed under one author by the remote API."""
        page = await self.client.fetch_titles_by_author(author_id, offset, limit)
        return page.records

    async def close(self):
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
