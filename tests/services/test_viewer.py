# tests/services/test_viewer.py
"""Tests for full-screen viewer navigation."""

import asyncio
from dataclasses import replace

import pytest

from cancelme_feed.services.state import set_auto_hidden
from cancelme_feed.services.viewer import MediaViewer
from tests.fakes import make_post


@pytest.fixture()
def viewer(store, views, paginator) -> MediaViewer:
    return MediaViewer(store, views, paginator)


@pytest.mark.asyncio
async def test_open_and_navigate_count_each_post_once(viewer, store, remote, views) -> None:
    assert viewer.open(0).id == "p1"
    assert viewer.playing is True
    assert (await viewer.next()).id == "p2"
    assert viewer.prev().id == "p1"
    assert viewer.prev().id == "p1"
    await views.drain()

    assert remote.called("increment_view") == [("p1", 1), ("p2", 1)]
    assert store.state.post("p1").views == 1


@pytest.mark.asyncio
async def test_next_at_end_without_more_pages_stays(viewer, remote) -> None:
    viewer.open(1)
    assert (await viewer.next()).id == "p2"
    assert viewer.index == 1
    assert remote.called("query_posts") == []


@pytest.mark.asyncio
async def test_next_at_end_loads_another_page(viewer, store, remote) -> None:
    remote.posts["p3"] = make_post("p3", created_at=store.state.posts[-1].created_at.replace(year=2000))
    store.dispatch(lambda state: replace(state, has_more=True))

    viewer.open(1)
    post = await viewer.next()

    assert post.id == "p3"
    assert [p.id for p in store.state.posts][-1] == "p3"


@pytest.mark.asyncio
async def test_hidden_posts_are_skipped(viewer, store) -> None:
    store.dispatch(set_auto_hidden, {"p1": True})
    assert viewer.open(0).id == "p2"


@pytest.mark.asyncio
async def test_close_stops_playback_and_cancels_views(viewer, remote) -> None:
    remote.gates["increment_view"] = asyncio.Event()
    viewer.open(0)
    await asyncio.sleep(0)

    assert viewer.close() == 1
    assert viewer.playing is False
    assert viewer.current_post is None
    assert viewer.prev() is None
    assert await viewer.next() is None
