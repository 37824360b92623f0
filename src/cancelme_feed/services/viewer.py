"""Full-screen viewer navigation."""

from __future__ import annotations

import logging

from cancelme_feed.schemas.post import Post
from cancelme_feed.services.feed import FeedPaginator
from cancelme_feed.services.state import FeedStore
from cancelme_feed.services.views import ViewDeduplicator

logger = logging.getLogger(__name__)


class MediaViewer:
    """Steps through the visible feed one post at a time.

    Landing on a post is a qualifying view signal. Closing the viewer stops
    playback and abandons in-flight view increments.
    """

    def __init__(
        self,
        store: FeedStore,
        views: ViewDeduplicator,
        paginator: FeedPaginator,
    ) -> None:
        self._store = store
        self._views = views
        self._paginator = paginator
        self.is_open = False
        self.playing = False
        self.index = 0

    @property
    def current_post(self) -> Post | None:
        if not self.is_open:
            return None
        posts = self._store.state.visible_posts()
        return posts[self.index] if 0 <= self.index < len(posts) else None

    def _land(self, index: int) -> Post | None:
        self.index = index
        post = self.current_post
        if post is not None:
            self._views.register_view(post.id)
            self.playing = True
        return post

    def open(self, index: int) -> Post | None:
        self.is_open = True
        return self._land(index)

    async def next(self) -> Post | None:
        """Advance, loading another page when at the end of the loaded feed."""
        if not self.is_open:
            return None
        target = self.index + 1
        if target >= len(self._store.state.visible_posts()):
            await self._paginator.load_more()
            if target >= len(self._store.state.visible_posts()):
                return self.current_post
        return self._land(target)

    def prev(self) -> Post | None:
        if not self.is_open:
            return None
        return self._land(max(0, self.index - 1))

    def close(self) -> int:
        """Stop playback and cancel pending view increments; returns how many."""
        self.is_open = False
        self.playing = False
        cancelled = self._views.cancel_pending()
        if cancelled:
            logger.debug("Abandoned %s view increments on close", cancelled)
        return cancelled
