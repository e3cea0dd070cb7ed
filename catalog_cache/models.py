"""Data models for catalog records and cache state."""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Optional, Union


USD_TO_EUR_RATE = Decimal("0.92")
TITLE_SHORT_LENGTH = 50
COVER_IMAGE_URL = "https://images.penguinrandomhouse.com/cover/{isbn}"


class CatalogKind(str, Enum):
    """The two record collections held by the cache."""
    AUTHORS = "authors"
    TITLES = "titles"


class LoadState(Enum):
    """Bulk loading state of one collection."""
    IDLE = "idle"
    BULK_LOADING = "bulk_loading"
    ERROR = "error"


def convert_usd_to_eur(price_usd: Optional[str]) -> Optional[str]:
    """
    Convert a USD price string to EUR at the fixed rate.

    Args:
        price_usd: Decimal string such as "10.00", or None

    Returns:
        EUR amount rounded to 2 decimals, or None when the input is
        missing or not a finite number
    """
    if price_usd is None or str(price_usd).strip() == "":
        return None
    try:
        amount = Decimal(str(price_usd).strip())
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    eur = (amount * USD_TO_EUR_RATE).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return str(eur)


@dataclass(frozen=True)
class Placeholder:
    """Marks a slot known to exist but not fetched yet."""

    def __repr__(self) -> str:
        return "PLACEHOLDER"


PLACEHOLDER = Placeholder()


@dataclass
class Author:
    """Normalized author record."""
    id: str
    display_name: str
    first_name: str
    last_name: str
    spotlight: Optional[str] = None
    first_name_lc: str = field(init=False)
    last_name_lc: str = field(init=False)
    last_first: str = field(init=False)
    last_name_initial: str = field(init=False)

    def __post_init__(self):
        self.first_name = self.first_name or ""
        self.last_name = self.last_name or ""
        self.first_name_lc = self.first_name.lower()
        self.last_name_lc = self.last_name.lower()
        self.last_first = f"{self.last_name}, {self.first_name}"
        self.last_name_initial = self.last_name[:1].upper()

    @property
    def key(self) -> str:
        return self.id


@dataclass
class Title:
    """Normalized title record."""
    isbn: str
    title_full: str
    author_display_name: str
    format_code: str = ""
    format_name: str = ""
    price_usd: Optional[str] = None
    on_sale_date: Optional[str] = None
    subject_category: Optional[str] = None
    isbn10: str = ""
    price_cad: Optional[str] = None
    pages: Optional[str] = None
    title_short: str = field(init=False)
    price_eur: Optional[str] = field(init=False)

    def __post_init__(self):
        self.title_full = self.title_full or ""
        self.title_short = self.title_full[:TITLE_SHORT_LENGTH]
        self.price_eur = convert_usd_to_eur(self.price_usd)

    @property
    def key(self) -> str:
        return self.isbn

    @property
    def cover_url(self) -> str:
        """Cover image URL on the PRH image CDN."""
        return COVER_IMAGE_URL.format(isbn=self.isbn)


Record = Union[Author, Title]
Slot = Union[Author, Title, Placeholder]


@dataclass
class CatalogPage:
    """One page of mapped records plus the remote record count, if reported."""
    records: list
    total_count: Optional[int] = None
