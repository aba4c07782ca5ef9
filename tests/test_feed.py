import asyncio
from dataclasses import dataclass

import pytest

from gallery_client.exceptions import BackendError
from gallery_client.state.feed import PagedFeedLoader


@dataclass
class Item:
    id: str


def pages_from(rows):
    calls = []

    async def fetch(offset, limit):
        calls.append((offset, limit))
        return [Item(r) for r in rows[offset:offset + limit]]

    return fetch, calls


def test_first_page_and_has_more():
    fetch, calls = pages_from([str(i) for i in range(5)])
    feed = PagedFeedLoader(fetch, page_size=2)

    assert asyncio.run(feed.load_page()) is True
    assert [i.id for i in feed.items] == ["0", "1"]
    assert feed.has_more is True
    assert calls == [(0, 2)]


def test_short_page_ends_feed_and_further_loads_are_ignored(feedback):
    fetch, calls = pages_from(["a", "b", "c"])
    feed = PagedFeedLoader(fetch, page_size=2, feedback=feedback)

    async def scenario():
        await feed.load_page()
        await feed.load_page()
        return await feed.load_page()

    assert asyncio.run(scenario()) is False
    assert [i.id for i in feed.items] == ["a", "b", "c"]
    assert feed.has_more is False
    assert calls == [(0, 2), (2, 2)]


def test_exact_multiple_needs_one_empty_fetch():
    fetch, calls = pages_from(["a", "b", "c", "d"])
    feed = PagedFeedLoader(fetch, page_size=2)

    async def scenario():
        while feed.has_more:
            await feed.load_page()

    asyncio.run(scenario())

    assert calls == [(0, 2), (2, 2), (4, 2)]
    assert len(feed.items) == 4


def test_overlapping_page_is_deduplicated():
    responses = [[Item("a"), Item("b")], [Item("b"), Item("c")]]

    async def fetch(offset, limit):
        return responses.pop(0)

    feed = PagedFeedLoader(fetch, page_size=2)

    async def scenario():
        await feed.load_page()
        await feed.load_page()

    asyncio.run(scenario())

    assert [i.id for i in feed.items] == ["a", "b", "c"]
    assert feed.state.offset == 4


def test_reset_after_three_pages_returns_to_first_page():
    fetch, calls = pages_from([str(i) for i in range(10)])
    feed = PagedFeedLoader(fetch, page_size=2)

    async def scenario():
        for _ in range(3):
            await feed.load_page()
        await feed.refresh()

    asyncio.run(scenario())

    assert [i.id for i in feed.items] == ["0", "1"]
    assert feed.state.offset == 2
    assert calls[-1] == (0, 2)


def test_load_while_loading_is_ignored():
    gate = asyncio.Event()
    calls = []

    async def fetch(offset, limit):
        calls.append(offset)
        await gate.wait()
        return [Item("a")]

    feed = PagedFeedLoader(fetch, page_size=2)

    async def scenario():
        first = asyncio.create_task(feed.load_page())
        await asyncio.sleep(0)
        assert feed.is_loading
        second = await feed.load_page()
        gate.set()
        return await first, second

    assert asyncio.run(scenario()) == (True, False)
    assert calls == [0]
    assert feed.is_loading is False


def test_replace_query_drops_stale_response():
    old_gate = asyncio.Event()

    async def old_fetch(offset, limit):
        await old_gate.wait()
        return [Item("old")]

    async def new_fetch(offset, limit):
        return [Item("new")]

    feed = PagedFeedLoader(old_fetch, page_size=2)

    async def scenario():
        stale = asyncio.create_task(feed.load_page())
        await asyncio.sleep(0)
        current = await feed.replace_query(new_fetch)
        old_gate.set()
        return await stale, current

    assert asyncio.run(scenario()) == (False, True)
    assert [i.id for i in feed.items] == ["new"]
    assert feed.is_loading is False


def test_error_reported_and_state_kept(feedback):
    fetch, _ = pages_from(["a", "b", "c"])
    feed = PagedFeedLoader(fetch, page_size=2, feedback=feedback)

    async def failing(offset, limit):
        raise BackendError()

    async def scenario():
        await feed.load_page()
        feed.fetch_page = failing
        return await feed.load_page()

    assert asyncio.run(scenario()) is False
    assert [i.id for i in feed.items] == ["a", "b"]
    assert feed.has_more is True
    assert feed.is_loading is False
    assert feedback.errors == ["Request failed, please try again"]


def test_disposed_feed_ignores_results():
    gate = asyncio.Event()

    async def fetch(offset, limit):
        await gate.wait()
        return [Item("a")]

    feed = PagedFeedLoader(fetch, page_size=2)

    async def scenario():
        task = asyncio.create_task(feed.load_page())
        await asyncio.sleep(0)
        feed.dispose()
        gate.set()
        return await task, await feed.load_page()

    assert asyncio.run(scenario()) == (False, False)
    assert feed.items == []


def test_page_size_validation():
    fetch, _ = pages_from([])
    with pytest.raises(ValueError):
        PagedFeedLoader(fetch, page_size=0)
    assert PagedFeedLoader(fetch, page_size=500).page_size == 100


def test_dispose_mid_fetch_clears_loading():
    gate = asyncio.Event()

    async def fetch(offset, limit):
        await gate.wait()
        return [Item("a")]

    feed = PagedFeedLoader(fetch, page_size=2)

    async def scenario():
        task = asyncio.create_task(feed.load_page())
        await asyncio.sleep(0)
        loading_before = feed.is_loading
        feed.dispose()
        loading_after = feed.is_loading
        gate.set()
        await task
        return loading_before, loading_after, feed.is_loading

    assert asyncio.run(scenario()) == (True, False, False)
