"""Sequential, rate-limited ingestion of a whole catalog collection."""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Set

from catalog_cache.errors import BatchFetchFailed, CatalogError
from catalog_cache.models import CatalogKind, LoadState
from catalog_cache.store import CacheStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[CatalogKind, int, int], None]


@dataclass
class BulkLoadResult:
    """Outcome of one ``BulkLoader.load`` call."""
    kind: CatalogKind
    skipped: bool = False
    batches: int = 0
    records_loaded: int = 0
    failures: List[BatchFetchFailed] = field(default_factory=list)
    dense: bool = False


class BulkLoader:
    """
    Fills a cache kind end to end with exactly one request in flight.

    Batch ``i+1`` is issued only after batch ``i`` has been processed
    (written, or recorded as failed) and ``delay`` seconds have passed.
    """

    def __init__(
        self,
        store: CacheStore,
        client,
        batch_size: int = 500,
        delay: float = 1.0,
        total_estimates: Optional[Dict[CatalogKind, int]] = None,
        on_progress: Optional[ProgressCallback] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Args:
            store: Cache the batches are written into
            client: Anything with ``async fetch_page(kind, offset, limit)``
            batch_size: Records per request
            delay: Seconds to wait between two requests
            total_estimates: Upper estimate per kind, used until the API reports a count
            on_progress: Called as ``on_progress(kind, loaded, total)`` after each batch
            sleep: Coroutine used for the inter-batch delay
        """
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.client = client
        self.batch_size = batch_size
        self.delay = delay
        self.total_estimates = dict(total_estimates or {})
        self.on_progress = on_progress
        self._sleep = sleep
        self._done: Dict[CatalogKind, asyncio.Event] = {}
        self._tasks: Dict[CatalogKind, asyncio.Task] = {}
        self._background: Set[asyncio.Task] = set()

    def is_running(self, kind: CatalogKind) -> bool:
        return self.store.state(kind) is LoadState.BULK_LOADING

    async def load(self, kind: CatalogKind) -> BulkLoadResult:
        """
        Run a full ingestion of ``kind``.

        Returns immediately with ``skipped=True`` if the kind is already dense
        or a run is in flight.
        """
        if self.store.is_dense(kind):
            logger.debug(f"{kind.value} already dense, bulk load skipped")
            return BulkLoadResult(kind=kind, skipped=True, dense=True)
        if self.is_running(kind):
            logger.debug(f"{kind.value} bulk load already running")
            return BulkLoadResult(kind=kind, skipped=True)

        self.store.set_state(kind, LoadState.BULK_LOADING)
        done = self._done[kind] = asyncio.Event()
        result = BulkLoadResult(kind=kind)
        started = time.monotonic()

        try:
            await self._run_batches(kind, result)
            result.dense = self.store.mark_dense(kind)
        except BaseException:
            self.store.set_state(kind, LoadState.ERROR)
            raise
        else:
            self.store.set_state(kind, LoadState.IDLE if result.dense else LoadState.ERROR)
        finally:
            done.set()

        logger.info(
            f"Bulk load of {kind.value} finished in {time.monotonic() - started:.1f}s: "
            f"{result.records_loaded} records, {result.batches} batches, "
            f"{len(result.failures)} failed, dense={result.dense}"
        )
        return result

    async def _run_batches(self, kind: CatalogKind, result: BulkLoadResult):
        offset = 0
        issued = False

        while offset < self._expected_total(kind):
            limit = min(self.batch_size, self._expected_total(kind) - offset)

            # Refill only the gaps when a previous run left some
            if self.store.is_resident(kind, offset, limit):
                offset += limit
                continue

            if issued:
                await self._sleep(self.delay)
            issued = True

            result.batches += 1
            logger.info(f"Fetching {kind.value} batch [{offset}, {offset + limit})")
            try:
                page = await self.client.fetch_page(kind, offset, limit)
            except CatalogError as e:
                failure = BatchFetchFailed(kind, offset, limit, e)
                result.failures.append(failure)
                logger.warning(f"Batch failed, continuing: {failure}")
            else:
                self.store.set_total_count(kind, page.total_count)
                self.store.write(kind, offset, page.records)
                result.records_loaded += len(page.records)

            offset += limit
            if self.on_progress:
                self.on_progress(kind, min(offset, self._expected_total(kind)), self._expected_total(kind))

    def _expected_total(self, kind: CatalogKind) -> int:
        total = self.store.total_count(kind)
        if total is not None:
            return total
        return self.total_estimates.get(kind, self.batch_size)

    def start(self, kind: CatalogKind) -> Optional[asyncio.Task]:
        """
        Preload ``kind`` in the background.

        Returns:
            The running task (a new one, or the one already in flight), or
            None if the kind is already dense
        """
        if self.store.is_dense(kind):
            return None
        task = self._tasks.get(kind)
        if task is not None and not task.done():
            return task

        task = asyncio.ensure_future(self.load(kind))
        self._tasks[kind] = task
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def wait(self, kind: CatalogKind):
        """Wait until an in-flight run of ``kind`` has finished."""
        done = self._done.get(kind)
        if done is not None:
            await done.wait()
