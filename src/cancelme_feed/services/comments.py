"""Comment subsystem: content gate and paginated threads."""
from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from cancelme_feed.core.errors import RemoteReadFailure
from cancelme_feed.core.settings import settings
from cancelme_feed.services.remote import RemoteService
from cancelme_feed.services.state import (
    FeedStore,
    merge_comment_counts,
    set_comments,
    toggle_thread,
)

logger = logging.getLogger(__name__)

EMPTY_MESSAGE = "Commentaire vide."
TOO_LONG_MESSAGE = "Commentaire trop long ({limit} caractères max)."
REFUSED_MESSAGE = "Contenu refusé."

_WHITESPACE = re.compile(r"\s+")


def normalize_comment_text(text: str) -> str:
    """Collapse runs of whitespace and trim."""
    return _WHITESPACE.sub(" ", text).strip()


def compile_banned_patterns(patterns: Sequence[str] | None = None) -> list[re.Pattern[str]]:
    return [
        re.compile(pattern, re.IGNORECASE)
        for pattern in (settings.banned_patterns if patterns is None else patterns)
    ]


def moderate_comment(
    content: str,
    *,
    max_length: int | None = None,
    banned: Sequence[re.Pattern[str]] | None = None,
) -> str | None:
    """Return a rejection message for normalized `content`, or None if acceptable."""
    limit = settings.comment_max_length if max_length is None else max_length
    if len(content) < 1:
        return EMPTY_MESSAGE
    if len(content) > limit:
        return TOO_LONG_MESSAGE.format(limit=limit)
    for pattern in compile_banned_patterns() if banned is None else banned:
        if pattern.search(content):
            return REFUSED_MESSAGE
    return None


class CommentThreads:
    """Loads and pages comment threads into the feed state."""

    def __init__(
        self,
        store: FeedStore,
        remote: RemoteService,
        *,
        page_size: int | None = None,
    ) -> None:
        self._store = store
        self._remote = remote
        self.page_size = page_size or settings.comments_page_size

    async def toggle(self, post_id: str) -> bool:
        """Open or close a thread; opening an unloaded thread fetches page one."""
        state = self._store.dispatch(toggle_thread, post_id)
        is_open = post_id in state.open_threads
        if is_open and post_id not in state.comments:
            await self.fetch(post_id)
        return is_open

    async def fetch(self, post_id: str, *, append: bool = False) -> None:
        """Load the newest page, or the next one when `append` is set.

        Read failures leave the thread at its last known state.
        """
        thread = self._store.state.comments.get(post_id, ())
        # Placeholders are not on the server yet and do not count toward the offset.
        offset = sum(1 for comment in thread if not comment.is_placeholder) if append else 0
        try:
            page = await self._remote.query_comments(post_id, offset, self.page_size)
        except RemoteReadFailure as exc:
            logger.warning("Could not load comments for %s: %s", post_id, exc)
            return
        self._store.dispatch(
            set_comments,
            post_id,
            page.items,
            append=append,
            has_more=len(page.items) == self.page_size,
            total=page.total,
        )

    async def load_more(self, post_id: str) -> None:
        await self.fetch(post_id, append=True)

    async def refresh_counts(self, post_ids: Sequence[str]) -> dict[str, int]:
        """Fetch comment totals for `post_ids` and merge them into the state."""
        if not post_ids:
            return {}
        try:
            counts = await self._remote.count_comments(post_ids)
        except RemoteReadFailure as exc:
            logger.warning("Could not refresh comment counts: %s", exc)
            return {}
        self._store.dispatch(merge_comment_counts, counts)
        return counts
