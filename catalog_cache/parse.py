"""Parse and normalize PRH API responses."""
import logging
from typing import Dict, Any, List, Optional

from catalog_cache.errors import CatalogRequestError
from catalog_cache.models import Author, Title, CatalogPage, CatalogKind, convert_usd_to_eur

logger = logging.getLogger(__name__)

# Format codes that are not books (music, puzzles, calendars, games, ...)
NON_BOOK_FORMATS = frozenset([
    "MU", "PZ", "CA", "GA", "GI", "PO", "ST", "WL", "NT", "CL", "BX", "KT"
])

__all__ = [
    "NON_BOOK_FORMATS",
    "convert_usd_to_eur",
    "is_non_book",
    "parse_author",
    "parse_title",
    "parse_page",
    "parse_single_author",
    "parse_single_title",
]


def is_non_book(format_code: Optional[str]) -> bool:
    """Return True if the format code belongs to the non-book set."""
    return (format_code or "").upper() in NON_BOOK_FORMATS


def _find_price(prices: Any, currency: str) -> Optional[str]:
    """Pick the amount for one currency out of the nested price array."""
    if not isinstance(prices, list):
        return None
    for entry in prices:
        if isinstance(entry, dict) and entry.get("currencyCode") == currency:
            amount = entry.get("amount")
            if amount in (None, ""):
                return None
            return str(amount)
    return None


def parse_author(item: Dict[str, Any]) -> Optional[Author]:
    """
    Parse a single author object from the PRH API.

    Args:
        item: Raw author object (``authorId``, ``display``, ``first``, ``last``)

    Returns:
        Author object or None if the record has no id
    """
    try:
        author_id = item.get("authorId")
        if author_id in (None, ""):
            return None

        first = item.get("first") or ""
        last = item.get("last") or ""
        display = item.get("display") or " ".join(p for p in (first, last) if p)

        return Author(
            id=str(author_id),
            display_name=display,
            first_name=first,
            last_name=last,
            spotlight=item.get("spotlight")
        )
    except (AttributeError, TypeError) as e:
        # Log but don't crash - APIs can be unpredictable
        logger.warning(f"Failed to parse author: {e}")
        return None


def parse_title(item: Dict[str, Any]) -> Optional[Title]:
    """
    Parse a single title object from the PRH API.

    Args:
        item: Raw title object (numeric ``isbn``, ``price`` array, ``format`` object)

    Returns:
        Title object or None if the record has no ISBN
    """
    try:
        isbn = item.get("isbn")
        if isbn in (None, ""):
            return None

        fmt = item.get("format") or {}
        prices = item.get("price")
        pages = item.get("pages")

        subject = item.get("subjectCategoryDescription1")
        if not subject:
            subjects = item.get("subjects") or []
            if subjects and isinstance(subjects[0], dict):
                subject = subjects[0].get("description")

        return Title(
            isbn=str(isbn),
            isbn10=str(item.get("isbn10") or ""),
            title_full=item.get("title") or "",
            author_display_name=item.get("author") or "",
            format_code=(fmt.get("code") or "").upper(),
            format_name=fmt.get("description") or "",
            price_usd=_find_price(prices, "USD"),
            price_cad=_find_price(prices, "CAD"),
            pages=str(pages) if pages not in (None, "") else None,
            on_sale_date=item.get("onsale"),
            subject_category=subject
        )
    except (AttributeError, TypeError) as e:
        logger.warning(f"Failed to parse title: {e}")
        return None


_PARSERS = {
    CatalogKind.AUTHORS: parse_author,
    CatalogKind.TITLES: parse_title,
}


def parse_page(kind: CatalogKind, response_json: Dict[str, Any]) -> CatalogPage:
    """
    Parse a paginated list response.

    Args:
        kind: Which collection the response belongs to
        response_json: ``{"recordCount": n, "data": {"authors"|"titles": [...]}}``

    Returns:
        CatalogPage with mapped records (unparseable items dropped) and
        the record count, or None if the response didn't report one
    """
    response_json = _require_object(response_json, "response")
    data = _require_object(response_json.get("data") or {}, "data")
    items = data.get(kind.value) or []
    if not isinstance(items, list):
        raise CatalogRequestError(f"Unexpected payload: {kind.value} is {type(items).__name__}", 200)
    parser = _PARSERS[kind]

    records = []
    for item in items:
        record = parser(item)
        if record:
            records.append(record)

    total = response_json.get("recordCount")
    total_count = int(total) if isinstance(total, (int, str)) and str(total).isdigit() else None
    return CatalogPage(records=records, total_count=total_count)


def _require_object(value: Any, name: str) -> Dict[str, Any]:
    """Raise CatalogRequestError unless a decoded JSON value is an object."""
    if not isinstance(value, dict):
        raise CatalogRequestError(f"Unexpected payload: {name} is {type(value).__name__}", 200)
    return value


def _unwrap_single(data: Any, plural: str, singular: str) -> Optional[Dict[str, Any]]:
    """Single-record responses come in three shapes; return the raw record."""
    if data is None:
        return None
    data = _require_object(data, "data")
    items = data.get(plural)
    if isinstance(items, list):
        if items and not isinstance(items[0], dict):
            raise CatalogRequestError(f"Unexpected payload: {plural}[0] is {type(items[0]).__name__}", 200)
        return items[0] if items else None
    if isinstance(data.get(singular), dict):
        return data[singular]
    return data


def parse_single_author(response_json: Dict[str, Any]) -> Optional[Author]:
    """Parse a ``GET authors/{id}`` response."""
    raw = _unwrap_single(_require_object(response_json, "response").get("data"), "authors", "author")
    return parse_author(raw) if raw else None


def parse_single_title(response_json: Dict[str, Any]) -> Optional[Title]:
    """Parse a ``GET titles/{isbn}`` response."""
    raw = _unwrap_single(_require_object(response_json, "response").get("data"), "titles", "title")
    return parse_title(raw) if raw else None
