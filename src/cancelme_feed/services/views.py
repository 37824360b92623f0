"""At-most-once-per-session view accounting."""

from __future__ import annotations

import asyncio
import logging

from cancelme_feed.core.errors import RemoteError
from cancelme_feed.services.remote import RemoteService
from cancelme_feed.services.state import FeedStore, apply_view

logger = logging.getLogger(__name__)


class ViewDeduplicator:
    """Count the first qualifying view of each post per session.

    The remote increment is fire-and-forget: a failure is logged and the
    local counter keeps its increment.
    """

    def __init__(self, remote: RemoteService, store: FeedStore) -> None:
        self._remote = remote
        self._store = store
        self._seen: set[str] = set()
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def seen(self) -> frozenset[str]:
        return frozenset(self._seen)

    def should_count(self, post_id: str) -> bool:
        """Return True the first time `post_id` is offered this session."""
        if post_id in self._seen:
            return False
        self._seen.add(post_id)
        return True

    def register_view(self, post_id: str) -> bool:
        """Handle a qualifying view signal; returns True if it was counted."""
        if not self.should_count(post_id):
            return False
        self._store.dispatch(apply_view, post_id)
        task = asyncio.get_running_loop().create_task(self._send(post_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _send(self, post_id: str) -> None:
        try:
            await self._remote.increment_view(post_id, 1)
        except RemoteError as exc:
            logger.warning("View increment failed for %s: %s", post_id, exc)

    async def drain(self) -> None:
        """Wait for in-flight increments to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def cancel_pending(self) -> int:
        """Abandon in-flight increments; returns how many were cancelled."""
        cancelled = 0
        for task in list(self._pending):
            if not task.done():
                task.cancel()
                cancelled += 1
        return cancelled

    def new_session(self) -> None:
        """Forget every counted post, starting a new view session."""
        self._seen = set()
