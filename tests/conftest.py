# tests/conftest.py
from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy.engine import Engine

from cancelme_feed.core.settings import Settings
from cancelme_feed.db.session import build_engine, build_sessionmaker, create_tables, drop_tables
from cancelme_feed.repositories.local_store import LocalStore
from cancelme_feed.services.device import DeviceProfile
from cancelme_feed.services.feed import FeedPaginator
from cancelme_feed.services.ledger import EventLedger
from cancelme_feed.services.moderation import AutoModerationEvaluator
from cancelme_feed.services.mutations import OptimisticMutationEngine
from cancelme_feed.services.rate_limiter import SlidingWindowRateLimiter
from cancelme_feed.services.state import FeedState, FeedStore
from cancelme_feed.services.views import ViewDeduplicator
from tests.fakes import FakeRemote, make_post

TEST_DB_URL = "sqlite://"


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = build_engine(TEST_DB_URL)
    create_tables(engine)
    try:
        yield engine
    finally:
        drop_tables(engine)
        engine.dispose()


@pytest.fixture()
def local_store(engine: Engine) -> LocalStore:
    return LocalStore(build_sessionmaker(engine))


@pytest.fixture()
def test_settings() -> Settings:
    """Settings with the documented defaults, independent of the environment."""
    return Settings(
        feed_page_size=3,
        comments_page_size=2,
        remote_base_url="http://remote.test",
    )


@pytest.fixture()
def ledger(local_store: LocalStore) -> EventLedger:
    return EventLedger(local_store)


@pytest.fixture()
def clock() -> list[int]:
    """Mutable fake clock in epoch milliseconds: `clock[0] += 1000`."""
    return [1_700_000_000_000]


@pytest.fixture()
def limiter(ledger: EventLedger, clock: list[int]) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(ledger, clock=lambda: clock[0])


@pytest.fixture()
def device(local_store: LocalStore) -> DeviceProfile:
    return DeviceProfile(local_store)


@pytest.fixture()
def remote() -> FakeRemote:
    return FakeRemote([make_post("p1", score=4, lol=2, genius=2), make_post("p2")])


@pytest.fixture()
def store(remote: FakeRemote) -> FeedStore:
    """A store already showing the fake remote's posts."""
    return FeedStore(FeedState(posts=tuple(remote.posts.values()), has_more=False))


@pytest.fixture()
def moderation(remote: FakeRemote) -> AutoModerationEvaluator:
    return AutoModerationEvaluator(remote, window_hours=24, threshold=3)


@pytest.fixture()
def engine_under_test(
    store: FeedStore,
    remote: FakeRemote,
    limiter: SlidingWindowRateLimiter,
    device: DeviceProfile,
    moderation: AutoModerationEvaluator,
    test_settings: Settings,
) -> OptimisticMutationEngine:
    return OptimisticMutationEngine(
        store, remote, limiter, device, moderation, config=test_settings
    )


@pytest.fixture()
def paginator(
    store: FeedStore,
    remote: FakeRemote,
    moderation: AutoModerationEvaluator,
) -> FeedPaginator:
    return FeedPaginator(store, remote, moderation, page_size=3)


@pytest.fixture()
def views(remote: FakeRemote, store: FeedStore) -> ViewDeduplicator:
    return ViewDeduplicator(remote, store)
