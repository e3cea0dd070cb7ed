import asyncio

import pytest

from catalog_cache.bulk_loader import BulkLoader
from catalog_cache.errors import CatalogRequestError, NotFound, RateLimited
from catalog_cache.models import Author, CatalogKind, CatalogPage, Title
from catalog_cache.page_loader import PageLoader
from catalog_cache.search import SearchEngine
from catalog_cache.store import CacheStore


class FakeClock:
    """Virtual time advanced only by fake sleeps and fake request latency."""

    def __init__(self):
        self.now = 0.0

    async def sleep(self, seconds: float):
        self.now += seconds
        # Yield so other tasks can interleave, as a real await would
        await asyncio.sleep(0)


class FakeCatalogClient:
    """In-memory stand-in for AsyncCatalogClient."""

    def __init__(self, authors=None, titles=None, clock=None, latency=0.25,
                 fail_offsets=None, rate_limited_offsets=None, report_total=True):
        self.data = {
            CatalogKind.AUTHORS: list(authors or []),
            CatalogKind.TITLES: list(titles or []),
        }
        self.clock = clock or FakeClock()
        self.latency = latency
        self.fail_offsets = set(fail_offsets or [])
        self.rate_limited_offsets = set(rate_limited_offsets or [])
        self.report_total = report_total
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_page(self, kind, offset, limit):
        call = {"kind": kind, "offset": offset, "limit": limit, "started": self.clock.now}
        self.calls.append(call)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await self.clock.sleep(self.latency)
            call["finished"] = self.clock.now
            if offset in self.rate_limited_offsets:
                raise RateLimited("Rate limited", 429)
            if offset in self.fail_offsets:
                raise CatalogRequestError("Server error 503", 503)
            records = self.data[kind][offset:offset + limit]
            total = len(self.data[kind]) if self.report_total else None
            return CatalogPage(records=list(records), total_count=total)
        finally:
            self.in_flight -= 1

    async def get_author(self, author_id):
        for author in self.data[CatalogKind.AUTHORS]:
            if author.id == author_id:
                return author
        raise NotFound(f"Author {author_id} not found")

    async def get_title(self, isbn):
        for title in self.data[CatalogKind.TITLES]:
            if title.isbn == isbn:
                return title
        raise NotFound(f"Title {isbn} not found")

    async def fetch_titles_by_author(self, author_id, offset=0, limit=50):
        author = await self.get_author(author_id)
        titles = [
            t for t in self.data[CatalogKind.TITLES]
            if t.author_display_name.lower() == author.display_name.lower()
        ]
        return CatalogPage(records=titles[offset:offset + limit], total_count=len(titles))

    def offsets(self, kind=None):
        return [(c["offset"], c["limit"]) for c in self.calls if kind is None or c["kind"] is kind]


def make_author(author_id, first, last, display=None):
    return Author(
        id=str(author_id),
        display_name=display or f"{first} {last}".strip(),
        first_name=first,
        last_name=last
    )


def make_title(isbn, title, author="Jane Doe", format_code="HC", price_usd=None, on_sale_date=None):
    return Title(
        isbn=str(isbn),
        title_full=title,
        author_display_name=author,
        format_code=format_code,
        format_name=format_code,
        price_usd=price_usd,
        on_sale_date=on_sale_date
    )


def numbered_authors(n):
    return [make_author(i, f"First{i}", f"Last{i}") for i in range(n)]


def numbered_titles(n):
    return [make_title(9780000000000 + i, f"Book {i}") for i in range(n)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return CacheStore()


@pytest.fixture
def sample_authors():
    return [
        make_author(1, "Anna", "Baker"),
        make_author(2, "Andrew", "Brown"),
        make_author(3, "Alice", "Carter"),
        make_author(4, "Bob", "Baker"),
        make_author(5, "Amy", "Bishop"),
        make_author(6, "Dan", "Brown"),
    ]


@pytest.fixture
def sample_titles():
    return [
        make_title("9780000000001", "The Lost Symbol", "Dan Brown", "HC", "29.95", "2009-09-15"),
        make_title("9780000000002", "Notes 9780000000001 and more", "Anna Baker", "TR", "10.00", "2015-01-01"),
        make_title("9780000000003", "Baking Calendar 2024", "Anna Baker", "CA", "14.99", "2023-07-04"),
        make_title("9780000000004", "Origin", "Dan Brown", "TR", "17.00", "2017-10-03"),
        make_title("9780000000005", "Symbols of the Sea", "Amy Bishop", "EL", None, None),
    ]


def build_engine(store, client, clock, batch_size=500, delay=1.0, estimates=None, rng=None):
    bulk = BulkLoader(
        store,
        client,
        batch_size=batch_size,
        delay=delay,
        total_estimates=estimates,
        sleep=clock.sleep
    )
    pages = PageLoader(store, client)
    return SearchEngine(store, bulk, pages, lucky_fallback_ceiling=100, rng=rng)
