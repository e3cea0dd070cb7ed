"""In-memory cache of authors and titles with dense and sparse addressing."""
import logging
from typing import Callable, Dict, List, Optional, Sequence

from catalog_cache.models import CatalogKind, LoadState, Placeholder, PLACEHOLDER, Record, Slot

logger = logging.getLogger(__name__)

Listener = Callable[[CatalogKind, str], None]


class _KindCache:
    """State for one collection."""

    def __init__(self):
        self.slots: List[Slot] = []
        self.total_count: Optional[int] = None
        self.state = LoadState.IDLE
        self.dense = False
        self.dense_extent = 0
        self.version = 0
        self.index: Dict[str, int] = {}


class CacheStore:
    """
    Locally known subset of the remote catalog.

    Each kind is a list of slots addressed by absolute offset. A slot holds
    either a record or ``PLACEHOLDER``. Writes are synchronous and applied in
    full, so coroutines interleaving between network awaits never observe a
    half-written batch.
    """

    def __init__(self):
        self._caches = {kind: _KindCache() for kind in CatalogKind}
        self._listeners: List[Listener] = []

    def is_resident(self, kind: CatalogKind, offset: int, count: int) -> bool:
        """True iff every position in ``[offset, offset+count)`` holds a record."""
        if count <= 0:
            return True
        if offset < 0:
            return False
        cache = self._caches[kind]
        end = offset + count
        if cache.dense and end <= cache.dense_extent:
            return True
        if end > len(cache.slots):
            return False
        return not any(isinstance(slot, Placeholder) for slot in cache.slots[offset:end])

    def has(self, kind: CatalogKind, offset: int) -> bool:
        return self.is_resident(kind, offset, 1)

    def read_range(self, kind: CatalogKind, offset: int, count: int) -> List[Record]:
        """Resident records in the window, in offset order; gaps are skipped."""
        if count <= 0:
            return []
        window = self._caches[kind].slots[max(0, offset):offset + count]
        return [slot for slot in window if not isinstance(slot, Placeholder)]

    def records(self, kind: CatalogKind) -> List[Record]:
        """Every resident record of the kind, in offset order."""
        return [slot for slot in self._caches[kind].slots if not isinstance(slot, Placeholder)]

    def find(self, kind: CatalogKind, key: str) -> Optional[Record]:
        """Look up a record by author id or ISBN."""
        cache = self._caches[kind]
        offset = cache.index.get(str(key))
        if offset is None:
            return None
        return cache.slots[offset]

    def write(self, kind: CatalogKind, offset: int, records: Sequence[Slot]):
        """
        Place records starting at ``offset``.

        Gaps before ``offset`` are padded with placeholders. A record may
        replace a record (refresh); a placeholder never replaces a record.
        """
        if offset < 0 or not records:
            return
        cache = self._caches[kind]
        slots = cache.slots

        if offset > len(slots):
            slots.extend([PLACEHOLDER] * (offset - len(slots)))

        for position, record in enumerate(records, start=offset):
            if position == len(slots):
                slots.append(record)
            elif isinstance(record, Placeholder):
                continue
            else:
                previous = slots[position]
                if not isinstance(previous, Placeholder) and previous.key != record.key:
                    cache.index.pop(previous.key, None)
                slots[position] = record

            if not isinstance(record, Placeholder):
                cache.index[record.key] = position

        cache.version += 1
        self._notify(kind, "write")

    def total_count(self, kind: CatalogKind) -> Optional[int]:
        return self._caches[kind].total_count

    def set_total_count(self, kind: CatalogKind, total: Optional[int]):
        """Record the remote record count; smaller values than the known one are ignored."""
        if total is None or total < 0:
            return
        cache = self._caches[kind]
        if cache.total_count is not None and total <= cache.total_count:
            return
        cache.total_count = total
        self._notify(kind, "total")

    def mark_dense(self, kind: CatalogKind) -> bool:
        """
        Declare ``[0, total_count)`` complete.

        Returns:
            True if the kind is dense afterwards, False if the total is
            unknown or placeholders remain
        """
        cache = self._caches[kind]
        if cache.dense:
            return True

        total = cache.total_count
        if total is None:
            logger.warning(f"Cannot mark {kind.value} dense: total count unknown")
            return False
        if not self.is_resident(kind, 0, total):
            missing = total - len(self.read_range(kind, 0, total))
            logger.warning(f"Cannot mark {kind.value} dense: {missing} of {total} records missing")
            return False

        cache.dense = True
        cache.dense_extent = total
        cache.version += 1
        self._notify(kind, "dense")
        return True

    def is_dense(self, kind: CatalogKind) -> bool:
        return self._caches[kind].dense

    def state(self, kind: CatalogKind) -> LoadState:
        return self._caches[kind].state

    def set_state(self, kind: CatalogKind, state: LoadState):
        cache = self._caches[kind]
        if cache.state is not state:
            cache.state = state
            self._notify(kind, "state")

    def version(self, kind: CatalogKind) -> int:
        """Mutation counter; changes whenever resident data changes."""
        return self._caches[kind].version

    def size(self, kind: CatalogKind) -> int:
        """Number of slots, placeholders included."""
        return len(self._caches[kind].slots)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback invoked as ``listener(kind, event)`` after each
        mutation. Events: ``write``, ``total``, ``dense``, ``state``.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, kind: CatalogKind, event: str):
        for listener in list(self._listeners):
            try:
                listener(kind, event)
            except Exception:
                logger.exception(f"Cache listener failed on {kind.value} {event}")
