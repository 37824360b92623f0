"""Feed query composition, ranking and pagination."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import datetime

from cancelme_feed.core.errors import RemoteReadFailure
from cancelme_feed.core.settings import settings
from cancelme_feed.db.time import utcnow
from cancelme_feed.schemas.feed import FeedPage, OrderBy, PostQuery, SortMode
from cancelme_feed.schemas.post import Post
from cancelme_feed.services.moderation import AutoModerationEvaluator
from cancelme_feed.services.remote import RemoteService
from cancelme_feed.services.state import (
    FeedStore,
    append_page,
    merge_comment_counts,
    merge_report_counts,
    reset_filter,
    set_auto_hidden,
    set_loading,
)

logger = logging.getLogger(__name__)

_UNSET = object()


def compose_query(
    sort_mode: SortMode | str,
    tag: str | None,
    offset: int,
    limit: int,
    *,
    now: datetime | None = None,
) -> PostQuery:
    """Build the remote query for one feed page."""
    mode = SortMode(sort_mode)
    window = mode.window
    since = (now or utcnow()) - window if window is not None else None
    return PostQuery(
        since=since,
        tag=tag.strip().lower() if tag and tag.strip() else None,
        order_by=OrderBy.SCORE if mode.by_score else OrderBy.CREATED_AT,
        offset=offset,
        limit=limit,
    )


def matches_query(post: Post, query: PostQuery) -> bool:
    """Return True if `post` passes the query's time window and tag filter."""
    if query.since is not None and post.created_at < query.since:
        return False
    if query.tag and query.tag not in post.tags:
        return False
    return True


def order_posts(posts: Iterable[Post], order_by: OrderBy) -> list[Post]:
    """Sort newest first, or by score with newest first among equal scores."""
    if order_by is OrderBy.SCORE:
        return sorted(posts, key=lambda post: (post.score, post.created_at), reverse=True)
    return sorted(posts, key=lambda post: post.created_at, reverse=True)


def run_query(posts: Iterable[Post], query: PostQuery) -> list[Post]:
    """Apply a `PostQuery` to an in-memory collection, pagination included."""
    ranked = order_posts((post for post in posts if matches_query(post, query)), query.order_by)
    return ranked[query.offset:query.offset + query.limit]


def rank_posts(
    posts: Iterable[Post],
    sort_mode: SortMode | str,
    tag: str | None = None,
    *,
    now: datetime | None = None,
) -> list[Post]:
    """Filter and order `posts` the way the remote store would for `sort_mode`."""
    query = compose_query(sort_mode, tag, 0, 1, now=now)
    return order_posts(
        (post for post in posts if matches_query(post, query)),
        query.order_by,
    )


class FeedPaginator:
    """Offset pagination of the feed into a `FeedStore`.

    Every load is tagged with the state generation it was issued under;
    `reset_filter` bumps the generation, so responses for a superseded filter
    are dropped instead of merged.
    """

    def __init__(
        self,
        store: FeedStore,
        remote: RemoteService,
        moderation: AutoModerationEvaluator,
        *,
        page_size: int | None = None,
    ) -> None:
        self._store = store
        self._remote = remote
        self._moderation = moderation
        self.page_size = page_size or settings.feed_page_size
        self._followups: set[asyncio.Task[None]] = set()

    async def fetch_page(
        self,
        offset: int,
        limit: int,
        sort_mode: SortMode | str,
        tag: str | None,
        *,
        now: datetime | None = None,
    ) -> FeedPage:
        """Fetch one page. A read failure yields an empty, final page."""
        query = compose_query(sort_mode, tag, offset, limit, now=now)
        try:
            items = await self._remote.query_posts(query)
        except RemoteReadFailure as exc:
            logger.warning("Feed page %s+%s unavailable: %s", offset, limit, exc)
            return FeedPage(items=[], has_more=False)
        return FeedPage(items=items, has_more=len(items) == limit)

    async def fetch_post(self, post_id: str) -> Post | None:
        """Fetch a single post for its detail view.

        Returns None when the post does not exist or cannot be read.
        """
        try:
            post = await self._remote.get_post(post_id)
        except RemoteReadFailure as exc:
            logger.warning("Post %s unavailable: %s", post_id, exc)
            return None
        if post is None:
            logger.info("Post %s not found", post_id)
        return post

    async def load_first_page(self) -> FeedPage | None:
        """Reload page one for the current filter."""
        state = self._store.state
        return await self.change_filter(sort_mode=state.sort_mode, tag=state.tag)

    async def change_filter(
        self,
        *,
        sort_mode: SortMode | str | object = _UNSET,
        tag: str | None | object = _UNSET,
    ) -> FeedPage | None:
        """Switch sort mode and/or tag, discard loaded pages and fetch page one."""
        state = self._store.state
        mode = state.sort_mode if sort_mode is _UNSET else SortMode(sort_mode)  # type: ignore[arg-type]
        new_tag = state.tag if tag is _UNSET else tag
        state = self._store.dispatch(reset_filter, mode, new_tag)  # type: ignore[arg-type]
        return await self._load(state.generation, 0)

    async def load_more(self) -> FeedPage | None:
        """Append the next page unless exhausted or a load is in flight."""
        state = self._store.state
        if not state.has_more or state.loading:
            return None
        state = self._store.dispatch(set_loading, True)
        return await self._load(state.generation, len(state.posts))

    async def _load(self, generation: int, offset: int) -> FeedPage | None:
        state = self._store.state
        landed = False
        try:
            page = await self.fetch_page(offset, self.page_size, state.sort_mode, state.tag)
            if self._store.state.generation != generation:
                logger.debug("Discarding stale page at offset %s", offset)
                return None
            self._store.dispatch(append_page, generation, page.items, page.has_more)
            landed = True
        finally:
            # A load that raised must not leave the feed stuck in `loading`.
            if not landed and self._store.state.generation == generation:
                self._store.dispatch(set_loading, False)
        if page.items:
            self._schedule_followups(generation, [post.id for post in page.items])
        return page

    # --- Follow-up batch queries ------------------------------------------------------
    def _schedule_followups(self, generation: int, post_ids: Sequence[str]) -> None:
        task = asyncio.get_running_loop().create_task(self._run_followups(generation, post_ids))
        self._followups.add(task)
        task.add_done_callback(self._followups.discard)

    async def _run_followups(self, generation: int, post_ids: Sequence[str]) -> None:
        comment_counts, (report_counts, hidden) = await asyncio.gather(
            self._comment_counts(post_ids),
            self._moderation.refresh(post_ids),
        )
        if self._store.state.generation != generation:
            return
        self._store.dispatch(merge_comment_counts, comment_counts)
        self._store.dispatch(merge_report_counts, report_counts)
        self._store.dispatch(set_auto_hidden, hidden)

    async def _comment_counts(self, post_ids: Sequence[str]) -> dict[str, int]:
        try:
            return await self._remote.count_comments(post_ids)
        except RemoteReadFailure as exc:
            logger.warning("Comment counts unavailable: %s", exc)
            return {}

    async def refresh_reports(self, post_ids: Sequence[str]) -> dict[str, bool]:
        """Re-fetch report counts for `post_ids` and re-evaluate auto-hide."""
        counts, hidden = await self._moderation.refresh(post_ids)
        self._store.dispatch(merge_report_counts, counts)
        self._store.dispatch(set_auto_hidden, hidden)
        return hidden

    async def drain(self) -> None:
        """Wait for scheduled follow-up queries to finish."""
        if self._followups:
            await asyncio.gather(*list(self._followups), return_exceptions=True)

    def cancel_pending(self) -> None:
        for task in list(self._followups):
            task.cancel()
