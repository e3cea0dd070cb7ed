"""Sort keys and memoized sorted views for browse listings."""
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple

from catalog_cache.models import Author, CatalogKind, Record, Title


def _text(value: Optional[str]) -> str:
    return (value or "").lower()


def parse_price(value: Optional[str]) -> Optional[Decimal]:
    """Numeric value of a price string, or None."""
    if value in (None, ""):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` (a trailing time part is ignored) or ``MM/DD/YYYY``."""
    if not value:
        return None
    m = re.match(r"(\d{4})-(\d{2})-(\d{2})", value)
    if m:
        year, month, day = (int(g) for g in m.groups())
    else:
        m = re.match(r"(\d{1,2})/(\d{1,2})/(\d{4})", value)
        if not m:
            return None
        month, day, year = (int(g) for g in m.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _missing_last(value: Any) -> Tuple[bool, Any]:
    return (value is None, value if value is not None else 0)


AUTHOR_SORT_KEYS: Dict[str, Callable[[Author], Any]] = {
    "first_name": lambda a: (a.first_name_lc, a.last_name_lc, a.id),
    "last_name": lambda a: (a.last_name_lc, a.first_name_lc, a.id),
}

TITLE_SORT_KEYS: Dict[str, Callable[[Title], Any]] = {
    "title": lambda t: (_text(t.title_full), t.isbn),
    "author": lambda t: (_text(t.author_display_name), _text(t.title_full), t.isbn),
    "price": lambda t: (_missing_last(parse_price(t.price_usd)), t.isbn),
    "date": lambda t: (_missing_last(parse_date(t.on_sale_date)), t.isbn),
}

SORT_KEYS = {
    CatalogKind.AUTHORS: AUTHOR_SORT_KEYS,
    CatalogKind.TITLES: TITLE_SORT_KEYS,
}


@dataclass(frozen=True)
class SortState:
    """Current sort field and direction of a listing."""
    field: str
    descending: bool = False

    def toggle(self, field: str) -> "SortState":
        """Same field flips the direction; a new field starts ascending."""
        if field == self.field:
            return SortState(field, not self.descending)
        return SortState(field)


def sort_records(kind: CatalogKind, records: List[Record], sort: SortState) -> List[Record]:
    """
    Sort records by one of the fields in ``SORT_KEYS[kind]``.

    Raises:
        ValueError: Unknown sort field for the kind
    """
    keys = SORT_KEYS[kind]
    if sort.field not in keys:
        raise ValueError(f"Cannot sort {kind.value} by {sort.field!r}; choose from {sorted(keys)}")
    ordered = sorted(records, key=keys[sort.field])
    if sort.descending:
        ordered.reverse()
    return ordered


class SortedViews:
    """
    One memoized sorted list per kind.

    An entry is reused while the store version and the sort state are the
    ones it was built for.
    """

    def __init__(self):
        self._entries: Dict[CatalogKind, Tuple[int, SortState, List[Record]]] = {}
        self.builds = 0

    def get(
        self,
        kind: CatalogKind,
        version: int,
        sort: SortState,
        records: Callable[[], List[Record]]
    ) -> List[Record]:
        entry = self._entries.get(kind)
        if entry is not None and entry[0] == version and entry[1] == sort:
            return entry[2]

        ordered = sort_records(kind, records(), sort)
        self._entries[kind] = (version, sort, ordered)
        self.builds += 1
        return ordered
