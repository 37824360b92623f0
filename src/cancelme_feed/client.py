"""`FeedClient`: one device session wired end to end."""

from __future__ import annotations

import logging

from sqlalchemy import Engine

from cancelme_feed.core.settings import Settings, settings
from cancelme_feed.db.session import build_engine, build_sessionmaker, create_tables
from cancelme_feed.repositories.local_store import LocalStore
from cancelme_feed.schemas.feed import FeedPage, SortMode
from cancelme_feed.schemas.post import Post
from cancelme_feed.services.comments import CommentThreads
from cancelme_feed.services.device import DeviceProfile
from cancelme_feed.services.feed import FeedPaginator
from cancelme_feed.services.ledger import EventLedger
from cancelme_feed.services.moderation import AutoModerationEvaluator
from cancelme_feed.services.mutations import OptimisticMutationEngine
from cancelme_feed.services.posts import PostComposer
from cancelme_feed.services.rate_limiter import SlidingWindowRateLimiter
from cancelme_feed.services.remote import HttpRemoteService, RemoteService
from cancelme_feed.services.state import FeedState, FeedStore, show_anyway
from cancelme_feed.services.viewer import MediaViewer
from cancelme_feed.services.views import ViewDeduplicator

logger = logging.getLogger(__name__)


class FeedClient:
    """Facade the rendering layer talks to.

    Attributes:
        store: Current feed state and its reducers.
        device: Device-local preferences and markers.
        mutations: Reactions, comments and reports.
        threads: Comment thread loading.
        paginator: Feed pages, filters and follow-up queries.
        views: Per-session view accounting.
        composer: Post publishing.
        viewer: Full-screen navigation.
    """

    def __init__(
        self,
        remote: RemoteService,
        local_store: LocalStore,
        *,
        config: Settings | None = None,
        engine: Engine | None = None,
    ) -> None:
        self.config = config or settings
        self.remote = remote
        self._engine = engine
        self.store = FeedStore()
        self.device = DeviceProfile(local_store)
        self.limiter = SlidingWindowRateLimiter(EventLedger(local_store))
        self.moderation = AutoModerationEvaluator(
            remote,
            window_hours=self.config.reports_window_hours,
            threshold=self.config.reports_autohide_threshold,
        )
        self.paginator = FeedPaginator(
            self.store, remote, self.moderation, page_size=self.config.feed_page_size
        )
        self.threads = CommentThreads(
            self.store, remote, page_size=self.config.comments_page_size
        )
        self.views = ViewDeduplicator(remote, self.store)
        self.mutations = OptimisticMutationEngine(
            self.store,
            remote,
            self.limiter,
            self.device,
            self.moderation,
            config=self.config,
        )
        self.composer = PostComposer(remote, self.device, self.paginator, config=self.config)
        self.viewer = MediaViewer(self.store, self.views, self.paginator)

    @classmethod
    def open(cls, config: Settings | None = None) -> FeedClient:
        """Build a client backed by the configured local database and REST store."""
        config = config or settings
        engine = build_engine(config.local_store_url)
        create_tables(engine)
        local_store = LocalStore(build_sessionmaker(engine))
        return cls(HttpRemoteService(config), local_store, config=config, engine=engine)

    @property
    def state(self) -> FeedState:
        return self.store.state

    def visible_posts(self) -> list[Post]:
        return self.store.state.visible_posts()

    async def start(self) -> FeedPage | None:
        """Begin a view session and load the first page."""
        self.views.new_session()
        return await self.paginator.load_first_page()

    async def set_sort(self, sort_mode: SortMode | str) -> FeedPage | None:
        return await self.paginator.change_filter(sort_mode=sort_mode)

    async def set_tag(self, tag: str | None) -> FeedPage | None:
        return await self.paginator.change_filter(tag=tag)

    async def get_post(self, post_id: str) -> Post | None:
        """Return the post for a detail view, preferring the loaded copy.

        None means the post is missing or unreadable ("Post introuvable.").
        """
        return self.store.state.post(post_id) or await self.paginator.fetch_post(post_id)

    def show_anyway(self, post_id: str) -> None:
        """Reveal an auto-hidden post for the rest of this session."""
        self.store.dispatch(show_anyway, post_id)

    async def aclose(self) -> None:
        """Abandon background work and release the HTTP client and database."""
        self.viewer.close()
        self.paginator.cancel_pending()
        close = getattr(self.remote, "aclose", None)
        if close is not None:
            await close()
        if self._engine is not None:
            self._engine.dispose()
