"""Tests for on-demand page loading."""
import asyncio

import httpx
import pytest

from catalog_cache.async_client import AsyncCatalogClient
from catalog_cache.bulk_loader import BulkLoader
from catalog_cache.errors import PageFetchFailed
from catalog_cache.models import CatalogKind, LoadState
from catalog_cache.page_loader import PageLoader, PageView

from conftest import FakeCatalogClient, numbered_authors, numbered_titles

AUTHORS = CatalogKind.AUTHORS
TITLES = CatalogKind.TITLES


@pytest.mark.asyncio
async def test_missing_page_issues_one_request_and_pads(store, clock):
    client = FakeCatalogClient(titles=numbered_titles(100), clock=clock)
    store.write(TITLES, 0, numbered_titles(10))
    loader = PageLoader(store, client)

    records = await loader.load_page(TITLES, 3, 10)

    assert client.offsets() == [(30, 10)]
    assert [t.isbn for t in records] == [str(9780000000030 + i) for i in range(10)]
    assert store.is_resident(TITLES, 0, 10)
    assert store.is_resident(TITLES, 30, 10)
    for offset in range(10, 30):
        assert not store.has(TITLES, offset)
    assert store.total_count(TITLES) == 100


@pytest.mark.asyncio
async def test_resident_page_needs_no_request(store, clock):
    client = FakeCatalogClient(authors=numbered_authors(50), clock=clock)
    loader = PageLoader(store, client)

    first = await loader.load_page(AUTHORS, 1, 10)
    again = await loader.load_page(AUTHORS, 1, 10)

    assert first == again
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_short_last_page_is_served_from_cache(store, clock):
    client = FakeCatalogClient(authors=numbered_authors(25), clock=clock)
    loader = PageLoader(store, client)

    first = await loader.load_page(AUTHORS, 2, 10)
    again = await loader.load_page(AUTHORS, 2, 10)

    assert len(first) == 5
    assert again == first
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_last_page_request_stops_at_known_total(store, clock):
    client = FakeCatalogClient(authors=numbered_authors(25), clock=clock)
    store.set_total_count(AUTHORS, 25)
    loader = PageLoader(store, client)

    records = await loader.load_page(AUTHORS, 2, 10)

    assert client.offsets() == [(20, 5)]
    assert [a.id for a in records] == [str(i) for i in range(20, 25)]


@pytest.mark.asyncio
async def test_page_beyond_total_is_empty_without_request(store, clock):
    client = FakeCatalogClient(authors=numbered_authors(25), clock=clock)
    store.set_total_count(AUTHORS, 25)
    loader = PageLoader(store, client)

    assert await loader.load_page(AUTHORS, 3, 10) == []
    assert client.calls == []


@pytest.mark.asyncio
async def test_changing_page_size_keeps_other_offsets(store, clock):
    client = FakeCatalogClient(authors=numbered_authors(100), clock=clock)
    loader = PageLoader(store, client)

    small = await loader.load_page(AUTHORS, 0, 10)
    large = await loader.load_page(AUTHORS, 1, 25)

    assert client.offsets() == [(0, 10), (25, 25)]
    assert store.read_range(AUTHORS, 0, 10) == small
    assert store.read_range(AUTHORS, 25, 25) == large
    assert not store.has(AUTHORS, 10)


@pytest.mark.asyncio
async def test_failure_raises_and_keeps_cache(store, clock):
    client = FakeCatalogClient(authors=numbered_authors(50), clock=clock, fail_offsets={20})
    loader = PageLoader(store, client)
    await loader.load_page(AUTHORS, 0, 10)
    version = store.version(AUTHORS)

    with pytest.raises(PageFetchFailed) as excinfo:
        await loader.load_page(AUTHORS, 2, 10)

    assert excinfo.value.offset == 20
    assert store.version(AUTHORS) == version
    assert store.is_resident(AUTHORS, 0, 10)


@pytest.mark.asyncio
async def test_page_load_does_not_start_bulk_loader(store, clock):
    client = FakeCatalogClient(authors=numbered_authors(50), clock=clock)
    loader = PageLoader(store, client)

    await loader.load_page(AUTHORS, 0, 10)

    assert store.state(AUTHORS) is LoadState.IDLE
    assert not store.is_dense(AUTHORS)


@pytest.mark.asyncio
async def test_page_and_bulk_loads_interleave_safely(store, clock):
    client = FakeCatalogClient(titles=numbered_titles(1000), clock=clock)
    bulk = BulkLoader(store, client, batch_size=100, delay=0.5,
                      total_estimates={TITLES: 1000}, sleep=clock.sleep)
    pages = PageLoader(store, client)

    task = bulk.start(TITLES)
    page = await pages.load_page(TITLES, 95, 10)
    result = await task

    assert [t.isbn for t in page] == [str(9780000000950 + i) for i in range(10)]
    assert result.dense
    assert store.read_range(TITLES, 950, 10) == page


@pytest.mark.asyncio
async def test_page_view_keeps_previous_records_on_failure(store, clock):
    client = FakeCatalogClient(authors=numbered_authors(50), clock=clock, fail_offsets={10})
    view = PageView(PageLoader(store, client), AUTHORS, page_size=10)
    shown = await view.show(0)

    with pytest.raises(PageFetchFailed):
        await view.next()

    assert view.records == shown
    assert view.page_index == 0
    assert view.error is not None
    assert not view.loading
    assert view.page_count == 5


@pytest.mark.asyncio
async def test_page_view_keeps_records_while_loading(store, clock):
    client = FakeCatalogClient(authors=numbered_authors(50), clock=clock)
    view = PageView(PageLoader(store, client), AUTHORS, page_size=10)
    shown = await view.show(0)

    pending = asyncio.ensure_future(view.show(1))
    await asyncio.sleep(0)
    assert view.loading
    assert view.records == shown

    await pending
    assert view.page_index == 1
    assert not view.loading


@pytest.mark.asyncio
async def test_page_view_drops_stale_response(store, clock):
    client = FakeCatalogClient(authors=numbered_authors(50), clock=clock)
    view = PageView(PageLoader(store, client), AUTHORS, page_size=10)

    slow = asyncio.ensure_future(view.show(1))
    await asyncio.sleep(0)
    latest = await view.show(2)
    await slow

    assert view.page_index == 2
    assert view.records == latest


@pytest.mark.asyncio
async def test_page_view_previous_stops_at_first_page(store, clock):
    client = FakeCatalogClient(authors=numbered_authors(50), clock=clock)
    view = PageView(PageLoader(store, client), AUTHORS, page_size=10)
    await view.show(2)

    back = await view.previous()

    assert view.page_index == 1
    assert [a.id for a in back] == [str(i) for i in range(10, 20)]

    await view.previous()
    await view.previous()

    assert view.page_index == 0
    assert view.records == store.read_range(AUTHORS, 0, 10)


@pytest.mark.asyncio
async def test_non_object_payload_raises_page_fetch_failed(store, clock):
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"[]")))
    client = AsyncCatalogClient(base_url="https://api.example.test/PRH.US", client=http, sleep=clock.sleep)
    view = PageView(PageLoader(store, client), TITLES, page_size=10)

    async with client:
        with pytest.raises(PageFetchFailed) as excinfo:
            await view.show(0)

    assert excinfo.value.offset == 0
    assert view.error is excinfo.value
    assert not view.loading
    assert view.records == []
    assert store.size(TITLES) == 0
