"""Optimistic mutation engine.

Each mutation applies its local delta synchronously, before the first await,
then issues the remote write. Success keeps (and, for comments, reconciles)
the local change; failure dispatches the exact inverse and raises
`RemoteWriteFailure` for the caller to display.
"""

from __future__ import annotations

import itertools
import logging

from cancelme_feed.core.errors import (
    DuplicateReactionError,
    RemoteError,
    RemoteWriteFailure,
    ValidationError,
)
from cancelme_feed.core.settings import Settings, settings
from cancelme_feed.db.time import now_ms, utcnow
from cancelme_feed.schemas.comment import PLACEHOLDER_PREFIX, Comment
from cancelme_feed.schemas.post import ReactionKind
from cancelme_feed.schemas.report import ReportCreate
from cancelme_feed.services.comments import (
    compile_banned_patterns,
    moderate_comment,
    normalize_comment_text,
)
from cancelme_feed.services.device import DeviceProfile
from cancelme_feed.services.moderation import AutoModerationEvaluator
from cancelme_feed.services.rate_limiter import (
    SlidingWindowRateLimiter,
    comment_scopes,
    reaction_scopes,
)
from cancelme_feed.services.remote import RemoteService
from cancelme_feed.services.state import (
    FeedStore,
    add_comment,
    apply_reaction,
    bump_report_count,
    remove_comment,
    replace_comment,
    revert_reaction,
    set_auto_hidden,
)

logger = logging.getLogger(__name__)

ALREADY_REACTED_MESSAGE = "Tu as déjà réagi à ce post."
REACTION_FAILED_MESSAGE = "Réaction non prise en compte"
COMMENT_FAILED_MESSAGE = "Ajout impossible."
REPORT_FAILED_MESSAGE = "Signalement non pris en compte."

_placeholder_counter = itertools.count(1)


def placeholder_id() -> str:
    """Return a local comment id that can never collide with a server id."""
    return f"{PLACEHOLDER_PREFIX}{now_ms()}-{next(_placeholder_counter)}"


class OptimisticMutationEngine:
    """Reactions, comment inserts and reports with rollback on failure."""

    def __init__(
        self,
        store: FeedStore,
        remote: RemoteService,
        limiter: SlidingWindowRateLimiter,
        device: DeviceProfile,
        moderation: AutoModerationEvaluator,
        *,
        config: Settings | None = None,
    ) -> None:
        self._store = store
        self._remote = remote
        self._limiter = limiter
        self._device = device
        self._moderation = moderation
        self._config = config or settings
        self._banned = compile_banned_patterns(self._config.banned_patterns)

    async def react(self, post_id: str, kind: ReactionKind | str) -> None:
        """Add one reaction of `kind` from this device.

        Raises:
            DuplicateReactionError: this device already sent `kind` for the post.
            RateLimitError: a reaction window is full.
            RemoteWriteFailure: the increment failed and was rolled back.
        """
        kind = ReactionKind(kind)
        if self._device.has_reacted(post_id, kind):
            raise DuplicateReactionError(ALREADY_REACTED_MESSAGE)
        self._limiter.check_and_record(reaction_scopes(post_id, self._config))

        self._device.mark_reacted(post_id, kind)
        self._store.dispatch(apply_reaction, post_id, kind)

        try:
            await self._remote.increment_reaction(post_id, kind, 1)
        except RemoteError as exc:
            logger.error("Reaction %s on %s failed: %s", kind.value, post_id, exc)
            self._device.clear_reacted(post_id, kind)
            self._store.dispatch(revert_reaction, post_id, kind)
            raise RemoteWriteFailure(REACTION_FAILED_MESSAGE) from exc

    async def add_comment(self, post_id: str, text: str) -> Comment:
        """Validate, throttle and optimistically insert a comment.

        Returns:
            The authoritative comment that replaced the placeholder.

        Raises:
            ValidationError: empty, oversized or banned content.
            RateLimitError: a comment window is full.
            RemoteWriteFailure: the insert failed and the placeholder was removed.
        """
        content = normalize_comment_text(text)
        rejection = moderate_comment(
            content, max_length=self._config.comment_max_length, banned=self._banned
        )
        if rejection:
            raise ValidationError(rejection)
        self._limiter.check_and_record(comment_scopes(post_id, self._config))

        display_name = self._device.display_name
        placeholder = Comment(
            id=placeholder_id(),
            post_id=post_id,
            content=content,
            display_name=display_name,
            created_at=utcnow(),
        )
        self._store.dispatch(add_comment, placeholder)

        try:
            saved = await self._remote.insert_comment(post_id, content, display_name)
        except RemoteError as exc:
            logger.error("Comment on %s failed: %s", post_id, exc)
            self._store.dispatch(remove_comment, post_id, placeholder.id)
            raise RemoteWriteFailure(COMMENT_FAILED_MESSAGE) from exc

        self._store.dispatch(replace_comment, placeholder.id, saved)
        return saved

    async def report(self, post_id: str, reason: str | None = None) -> None:
        """Flag a post and re-evaluate its auto-hide flag on success.

        The local report count goes up before the insert is confirmed.
        """
        payload = ReportCreate(
            post_id=post_id,
            reason=(reason or "").strip() or None,
            reporter_fingerprint=self._device.fingerprint(),
            reporter_name=self._device.display_name,
        )
        self._store.dispatch(bump_report_count, post_id, 1)

        try:
            await self._remote.insert_report(payload)
        except RemoteError as exc:
            logger.error("Report on %s failed: %s", post_id, exc)
            self._store.dispatch(bump_report_count, post_id, -1)
            raise RemoteWriteFailure(REPORT_FAILED_MESSAGE) from exc

        count = self._store.state.report_counts.get(post_id, 0)
        self._store.dispatch(set_auto_hidden, self._moderation.evaluate_counts({post_id: count}))
