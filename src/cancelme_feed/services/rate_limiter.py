"""Sliding-window rate limiting over device-local event ledgers.

Limits are enforced on the client only. They throttle casual abuse; anyone
who controls the device storage can reset them.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from cancelme_feed.core.errors import RateLimitError
from cancelme_feed.core.settings import Settings, settings
from cancelme_feed.db.time import now_ms
from cancelme_feed.services.ledger import EventLedger, prune_window

logger = logging.getLogger(__name__)

COMMENT_GLOBAL_MESSAGE = "Trop de commentaires en peu de temps. Réessaie dans une minute."
COMMENT_POST_MESSAGE = "Ralentis un peu sur ce post 😉"
REACTION_GLOBAL_MESSAGE = "Trop de réactions d'un coup. Patiente quelques secondes."
REACTION_POST_MESSAGE = "Doucement sur ce post 😉"


@dataclass(frozen=True)
class RateLimitScope:
    """A named bucket with its window and the maximum events allowed in it."""

    name: str
    window_ms: int
    max_events: int
    message: str = "Trop d'actions en peu de temps."


def comment_scopes(
    post_id: str, config: Settings | None = None
) -> tuple[RateLimitScope, RateLimitScope]:
    """Return the global and per-post scopes gating comment submission."""
    config = config or settings
    return (
        RateLimitScope(
            "comments:global",
            config.comment_global_window_ms,
            config.comment_global_max,
            COMMENT_GLOBAL_MESSAGE,
        ),
        RateLimitScope(
            f"comments:post:{post_id}",
            config.comment_post_window_ms,
            config.comment_post_max,
            COMMENT_POST_MESSAGE,
        ),
    )


def reaction_scopes(
    post_id: str, config: Settings | None = None
) -> tuple[RateLimitScope, RateLimitScope]:
    """Return the global and per-post scopes gating reactions."""
    config = config or settings
    return (
        RateLimitScope(
            "reactions:global",
            config.reaction_global_window_ms,
            config.reaction_global_max,
            REACTION_GLOBAL_MESSAGE,
        ),
        RateLimitScope(
            f"reactions:post:{post_id}",
            config.reaction_post_window_ms,
            config.reaction_post_max,
            REACTION_POST_MESSAGE,
        ),
    )


class SlidingWindowRateLimiter:
    """Check-and-record limiter over an `EventLedger`.

    Every method is synchronous, so a check followed by a record runs in a
    single event-loop turn.
    """

    def __init__(self, ledger: EventLedger, clock: Callable[[], int] = now_ms) -> None:
        self._ledger = ledger
        self._clock = clock

    def allow(
        self,
        scope: str,
        window_ms: int,
        max_events: int,
        *,
        now: int | None = None,
    ) -> bool:
        """Return True if fewer than `max_events` were recorded within the window."""
        now = self._clock() if now is None else now
        recent = prune_window(self._ledger.read(scope), now, window_ms)
        return len(recent) < max_events

    def record(self, scope: str, window_ms: int, *, timestamp: int | None = None) -> None:
        """Prune the scope and append `timestamp` (default: now)."""
        now = self._clock() if timestamp is None else timestamp
        self._ledger.append(scope, now, now, window_ms)

    def check_and_record(self, scopes: Sequence[RateLimitScope], *, now: int | None = None) -> None:
        """Record one event in every scope, or raise without recording anything.

        Raises:
            RateLimitError: naming the first scope whose limit is reached.
        """
        now = self._clock() if now is None else now
        for scope in scopes:
            if not self.allow(scope.name, scope.window_ms, scope.max_events, now=now):
                logger.info("Rate limit reached for scope %s", scope.name)
                raise RateLimitError(scope.message, scope=scope.name)
        for scope in scopes:
            self.record(scope.name, scope.window_ms, timestamp=now)
