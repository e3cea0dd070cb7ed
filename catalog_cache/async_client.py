"""Async HTTP client for the PRH catalog API with resilience patterns."""
import asyncio
import random
import httpx
from typing import Optional, Dict, Any, Callable, Awaitable
import logging

from catalog_cache.errors import CatalogRequestError, NotFound, RateLimited
from catalog_cache.models import Author, Title, CatalogKind, CatalogPage
from catalog_cache.parse import parse_page, parse_single_author, parse_single_title

logger = logging.getLogger(__name__)


class AsyncCatalogClient:
    """Async client for the authors/titles endpoints with retries and backoff."""

    BASE_URL = "https://api.penguinrandomhouse.com/resources/v2/domains/PRH.US"

    def __init__(
        self,
        api_key: str = "",
        base_url: Optional[str] = None,
        timeout: int = 10,
        max_retries: int = 3,
        base_backoff: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize async client.

        Args:
            api_key: PRH API key, sent with every request
            base_url: Override for the domain root
            timeout: Request timeout in seconds
            max_retries: Maximum attempts for 429, 5xx and transport errors
            base_backoff: Base delay for exponential backoff
            client: Pre-built httpx client (tests pass one with a mock transport)
            sleep: Coroutine used for backoff waits
        """
        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.base_backoff = base_backoff
        self._sleep = sleep

        # Create async HTTP client
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch_authors(
        self,
        offset: int = 0,
        limit: int = 10,
        last_name_initial: Optional[str] = None,
        sort: Optional[str] = None
    ) -> CatalogPage:
        """
        Fetch one window of the author list.

        Args:
            offset: Index of the first record
            limit: Number of records requested
            last_name_initial: Restrict to authors whose last name starts with this letter
            sort: Remote sort field (e.g. ``authorLast``)

        Returns:
            CatalogPage of Author records
        """
        params = {"start": offset, "rows": limit}
        if last_name_initial:
            params["authorLastInitial"] = last_name_initial[:1].upper()
        if sort:
            params["sort"] = sort

        data = await self._get_json("/authors", params)
        return parse_page(CatalogKind.AUTHORS, data)

    async def fetch_titles(
        self,
        offset: int = 0,
        limit: int = 10,
        title: Optional[str] = None,
        author: Optional[str] = None,
        format: Optional[str] = None
    ) -> CatalogPage:
        """
        Fetch one window of the title list.

        Args:
            offset: Index of the first record
            limit: Number of records requested
            title: Remote title filter
            author: Remote author filter
            format: Format code filter (e.g. ``HC``, ``TR``)

        Returns:
            CatalogPage of Title records
        """
        params = {"start": offset, "rows": limit}
        if title:
            params["title"] = title
        if author:
            params["author"] = author
        if format:
            params["format"] = format

        data = await self._get_json("/titles", params)
        return parse_page(CatalogKind.TITLES, data)

    async def fetch_page(self, kind: CatalogKind, offset: int, limit: int) -> CatalogPage:
        """Fetch an unfiltered window of either collection."""
        if kind is CatalogKind.AUTHORS:
            return await self.fetch_authors(offset, limit)
        return await self.fetch_titles(offset, limit)

    async def fetch_titles_by_author(
        self,
        author_id: str,
        offset: int = 0,
        limit: int = 50
    ) -> CatalogPage:
        """Fetch the titles written by one author."""
        data = await self._get_json(
            f"/authors/{author_id}/titles",
            {"start": offset, "rows": limit}
        )
        return parse_page(CatalogKind.TITLES, data)

    async def get_author(self, author_id: str) -> Author:
        """
        Fetch a single author.

        Raises:
            NotFound: No author with that id
        """
        data = await self._get_json(f"/authors/{author_id}", {})
        author = parse_single_author(data)
        if author is None:
            raise NotFound(f"Author {author_id} not found")
        return author

    async def get_title(self, isbn: str) -> Title:
        """
        Fetch a single title.

        Raises:
            NotFound: No title with that ISBN
        """
        data = await self._get_json(f"/titles/{isbn}", {})
        title = parse_single_title(data)
        if title is None:
            raise NotFound(f"Title {isbn} not found")
        return title

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Make a GET request with retry logic.

        Args:
            path: Endpoint path below the base URL
            params: Query parameters (the API key is added here)

        Returns:
            Decoded JSON body

        Raises:
            NotFound: 404
            RateLimited: 429 on every attempt
            CatalogRequestError: Any other failure once retries are exhausted
        """
        url = f"{self.base_url}{path}"
        params = dict(params)
        if self.api_key:
            params["api_key"] = self.api_key

        last_error: Optional[CatalogRequestError] = None

        for attempt in range(self.max_retries):
            retry_after = None
            try:
                logger.info(f"Request attempt {attempt + 1}/{self.max_retries}: {path} {params.get('start', '')}")
                response = await self.client.get(url, params=params)

                # Handle different status codes
                if response.status_code == 200:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise CatalogRequestError(f"Invalid JSON from {path}: {e}", 200) from e

                elif response.status_code == 404:
                    raise NotFound(f"{path} not found")

                elif response.status_code == 429:
                    # Rate limited - retry with backoff
                    logger.warning(f"Rate limited (429) on attempt {attempt + 1}")
                    last_error = RateLimited(f"Rate limited on {path}", 429)
                    retry_after = self._retry_after(response)

                elif response.status_code >= 500:
                    # Server error - retryable
                    logger.warning(f"Server error ({response.status_code}) on attempt {attempt + 1}")
                    last_error = CatalogRequestError(
                        f"Server error {response.status_code} on {path}",
                        response.status_code
                    )

                else:
                    # Client error - don't retry
                    logger.error(f"Client error ({response.status_code}): {response.text[:200]}")
                    raise CatalogRequestError(
                        f"Client error {response.status_code} on {path}",
                        response.status_code
                    )

            except httpx.TimeoutException as e:
                logger.warning(f"Timeout on attempt {attempt + 1}")
                last_error = CatalogRequestError(f"Timeout on {path}: {e}")

            except httpx.TransportError as e:
                logger.warning(f"Connection error on attempt {attempt + 1}: {e}")
                last_error = CatalogRequestError(f"Connection error on {path}: {e}")

            if attempt < self.max_retries - 1:
                await self._backoff(attempt, retry_after)

        logger.error(f"All {self.max_retries} attempts failed for {path}")
        raise last_error

    @staticmethod
    def _retry_after(response: httpx.Response) -> Optional[float]:
        """Read a numeric Retry-After header, if any."""
        value = response.headers.get("Retry-After")
        try:
            return float(value) if value is not None else None
        except ValueError:
            return None

    async def _backoff(self, attempt: int, retry_after: Optional[float] = None):
        """
        Sleep with exponential backoff and jitter.

        Args:
            attempt: Current attempt number (0-indexed)
            retry_after: Server-requested delay, used as a floor
        """
        # Exponential backoff: base * 2^attempt
        delay = self.base_backoff * (2 ** attempt)

        # Add jitter: random value between 0 and delay
        jitter = random.uniform(0, delay)
        total_delay = max(delay + jitter, retry_after or 0)

        logger.info(f"Backing off for {total_delay:.2f} seconds")
        await self._sleep(total_delay)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
