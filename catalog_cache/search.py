"""Search, filter and sort over the fully loaded local catalog."""
import logging
import random
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from catalog_cache.bulk_loader import BulkLoader
from catalog_cache.errors import CatalogIncomplete
from catalog_cache.models import Author, CatalogKind, Record, Title
from catalog_cache.page_loader import PageLoader
from catalog_cache.parse import is_non_book
from catalog_cache.sorting import SortState, SortedViews
from catalog_cache.store import CacheStore

logger = logging.getLogger(__name__)

_ISBN_SEPARATORS = re.compile(r"[\s-]+")


def normalize_query(value: Optional[str]) -> str:
    """Trim, lowercase and collapse inner whitespace."""
    return " ".join((value or "").split()).lower()


def as_isbn(keyword: Optional[str]) -> Optional[str]:
    """Return the digits of a keyword that is an ISBN (hyphens/spaces allowed), else None."""
    digits = _ISBN_SEPARATORS.sub("", keyword or "")
    return digits if digits.isdigit() else None


def split_author_name(name: str) -> Tuple[str, str]:
    """
    Split a free-form author name into (first, last) prefixes.

    "Dan Brown" -> ("dan", "brown"); "Gabriel Garcia Marquez" ->
    ("gabriel", "garcia marquez"). A single token comes back as
    ("", token) and is matched against both names by the caller.
    """
    tokens = normalize_query(name).split(" ")
    tokens = [t for t in tokens if t]
    if not tokens:
        return "", ""
    if len(tokens) == 1:
        return "", tokens[0]
    return tokens[0], " ".join(tokens[1:])


@dataclass
class AuthorQuery:
    first_name: str = ""
    last_name: str = ""


@dataclass
class TitleQuery:
    keyword: str = ""
    author: str = ""
    format: str = ""
    exclude_non_books: bool = False


def match_authors(authors: List[Author], first_name: str = "", last_name: str = "") -> List[Author]:
    """Case-insensitive prefix match on first and last name, ANDed."""
    first = normalize_query(first_name)
    last = normalize_query(last_name)
    return [
        a for a in authors
        if normalize_query(a.first_name).startswith(first)
        and normalize_query(a.last_name).startswith(last)
    ]


def filter_titles(titles: List[Title], query: TitleQuery, author_names: Optional[List[str]] = None) -> List[Title]:
    """
    Apply the title filters in order: keyword, resolved authors, format,
    non-book exclusion.

    Args:
        titles: Candidate titles
        query: Title criteria
        author_names: Display names resolved from ``query.author``; None
            means no author criterion was given
    """
    items = titles

    isbn = as_isbn(query.keyword)
    keyword = normalize_query(query.keyword)
    if isbn:
        items = [t for t in items if t.isbn == isbn or t.isbn10 == isbn]
    elif keyword:
        items = [
            t for t in items
            if keyword in normalize_query(t.title_full) or keyword in normalize_query(t.title_short)
        ]

    if author_names is not None:
        names = [normalize_query(n) for n in author_names if n]
        items = [
            t for t in items
            if any(n in normalize_query(t.author_display_name) for n in names)
        ]

    if query.format:
        code = query.format.strip().upper()
        items = [t for t in items if t.format_code.upper() == code]

    if query.exclude_non_books:
        items = [t for t in items if not is_non_book(t.format_code)]

    return items


class SearchEngine:
    """
    Answers queries against the local cache.

    Search and sorted views only ever run over a dense kind; the engine loads
    the full catalog first when needed.
    """

    def __init__(
        self,
        store: CacheStore,
        bulk_loader: BulkLoader,
        page_loader: PageLoader,
        lucky_fallback_ceiling: int = 10000,
        rng: Optional[random.Random] = None
    ):
        self.store = store
        self.bulk_loader = bulk_loader
        self.page_loader = page_loader
        self.lucky_fallback_ceiling = lucky_fallback_ceiling
        self.rng = rng or random.Random()
        self.sorted_views = SortedViews()

    async def ensure_dense(self, kind: CatalogKind):
        """
        Make ``kind`` fully resident, waiting for or starting a bulk load.

        Raises:
            CatalogIncomplete: Bulk loading finished with gaps
        """
        if self.store.is_dense(kind):
            return
        if self.bulk_loader.is_running(kind):
            await self.bulk_loader.wait(kind)
        else:
            await self.bulk_loader.load(kind)
        if not self.store.is_dense(kind):
            raise CatalogIncomplete(kind)

    async def search_authors(self, query: AuthorQuery) -> List[Author]:
        """Authors whose first and last names start with the given prefixes."""
        await self.ensure_dense(CatalogKind.AUTHORS)
        results = match_authors(
            self.store.records(CatalogKind.AUTHORS),
            query.first_name,
            query.last_name
        )
        logger.info(f"Author search {query} matched {len(results)}")
        return results

    async def resolve_authors(self, name: str) -> List[Author]:
        """Authors matching a free-form name, tokenized into first/last."""
        first, last = split_author_name(name)
        if not last:
            return []
        await self.ensure_dense(CatalogKind.AUTHORS)
        authors = self.store.records(CatalogKind.AUTHORS)
        if first:
            return match_authors(authors, first, last)
        # A single token may be either name
        by_last = match_authors(authors, "", last)
        seen = {a.id for a in by_last}
        by_first = [a for a in match_authors(authors, last, "") if a.id not in seen]
        return by_last + by_first

    async def search_titles(self, query: TitleQuery) -> List[Title]:
        """Titles matching every supplied criterion."""
        await self.ensure_dense(CatalogKind.TITLES)

        author_names = None
        if normalize_query(query.author):
            resolved = await self.resolve_authors(query.author)
            author_names = [a.display_name for a in resolved]
            if not author_names:
                logger.info(f"No authors resolved for {query.author!r}")
                return []

        results = filter_titles(self.store.records(CatalogKind.TITLES), query, author_names)
        logger.info(f"Title search {query} matched {len(results)}")
        return results

    async def sorted_records(self, kind: CatalogKind, sort: SortState) -> List[Record]:
        """The full collection in sort order, memoized until the cache or sort changes."""
        await self.ensure_dense(kind)
        return self.sorted_views.get(
            kind,
            self.store.version(kind),
            sort,
            lambda: self.store.records(kind)
        )

    async def sorted_page(
        self,
        kind: CatalogKind,
        sort: SortState,
        page_index: int,
        page_size: int
    ) -> List[Record]:
        """One page of the sorted collection."""
        if page_index < 0 or page_size <= 0:
            return []
        ordered = await self.sorted_records(kind, sort)
        start = page_index * page_size
        return ordered[start:start + page_size]

    async def feeling_lucky(self, kind: CatalogKind) -> Optional[Record]:
        """A uniformly random record, loaded through the page loader."""
        total = self.store.total_count(kind)
        ceiling = total if total is not None else self.lucky_fallback_ceiling
        if ceiling <= 0:
            return None
        offset = self.rng.randrange(ceiling)
        records = await self.page_loader.load_page(kind, offset, 1)
        return records[0] if records else None
