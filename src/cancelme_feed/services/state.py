"""Feed state container and its pure transitions.

`FeedState` is immutable. Each reducer takes the current state plus the
mutation's arguments and returns a new state; `FeedStore.dispatch` swaps the
whole value. Optimistic changes and their rollbacks are reducer pairs
(`apply_reaction`/`revert_reaction`, `add_comment`/`remove_comment`).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Concatenate, ParamSpec

from cancelme_feed.schemas.comment import Comment
from cancelme_feed.schemas.feed import SortMode
from cancelme_feed.schemas.post import Post, ReactionKind

logger = logging.getLogger(__name__)

P = ParamSpec("P")


@dataclass(frozen=True)
class FeedState:
    """Everything the rendering layer draws from."""

    posts: tuple[Post, ...] = ()
    sort_mode: SortMode = SortMode.RECENT
    tag: str | None = None
    has_more: bool = True
    loading: bool = False
    # Bumped on every filter change; responses issued under an older value are stale.
    generation: int = 0

    comments: Mapping[str, tuple[Comment, ...]] = field(default_factory=dict)
    comment_counts: Mapping[str, int] = field(default_factory=dict)
    has_more_comments: Mapping[str, bool] = field(default_factory=dict)
    open_threads: frozenset[str] = frozenset()

    report_counts: Mapping[str, int] = field(default_factory=dict)
    auto_hidden: Mapping[str, bool] = field(default_factory=dict)
    # Per-session "show anyway" overrides; never touch `auto_hidden`.
    shown_anyway: frozenset[str] = frozenset()

    def post(self, post_id: str) -> Post | None:
        for post in self.posts:
            if post.id == post_id:
                return post
        return None

    def visible_posts(self) -> list[Post]:
        """Return posts minus auto-hidden ones the viewer has not revealed."""
        return [
            post
            for post in self.posts
            if not self.auto_hidden.get(post.id) or post.id in self.shown_anyway
        ]


# --- Pagination ---------------------------------------------------------------------
def reset_filter(state: FeedState, sort_mode: SortMode, tag: str | None) -> FeedState:
    """Start over for a new filter, discarding accumulated pages."""
    return replace(
        state,
        posts=(),
        sort_mode=sort_mode,
        tag=tag.lower() if tag else None,
        has_more=True,
        loading=True,
        generation=state.generation + 1,
    )


def set_loading(state: FeedState, loading: bool) -> FeedState:
    return replace(state, loading=loading)


def append_page(
    state: FeedState,
    generation: int,
    items: Iterable[Post],
    has_more: bool,
) -> FeedState:
    """Append a page fetched under `generation`; stale pages are ignored."""
    if generation != state.generation:
        logger.debug("Dropping page for superseded generation %s", generation)
        return state
    known = {post.id for post in state.posts}
    fresh = tuple(post for post in items if post.id not in known)
    return replace(state, posts=state.posts + fresh, has_more=has_more, loading=False)


def _update_post(state: FeedState, post_id: str, update: Callable[[Post], Post]) -> FeedState:
    if state.post(post_id) is None:
        return state
    return replace(
        state,
        posts=tuple(update(post) if post.id == post_id else post for post in state.posts),
    )


# --- Reactions and views ------------------------------------------------------------
def apply_reaction(state: FeedState, post_id: str, kind: ReactionKind) -> FeedState:
    """Increment the reaction counter and the score together."""
    name = ReactionKind(kind).value
    return _update_post(
        state,
        post_id,
        lambda post: post.model_copy(
            update={name: getattr(post, name) + 1, "score": post.score + 1}
        ),
    )


def revert_reaction(state: FeedState, post_id: str, kind: ReactionKind) -> FeedState:
    """Exact inverse of `apply_reaction`, never going below zero."""
    name = ReactionKind(kind).value
    return _update_post(
        state,
        post_id,
        lambda post: post.model_copy(
            update={
                name: max(0, getattr(post, name) - 1),
                "score": max(0, post.score - 1),
            }
        ),
    )


def apply_view(state: FeedState, post_id: str) -> FeedState:
    return _update_post(
        state,
        post_id,
        lambda post: post.model_copy(update={"views": post.views + 1}),
    )


# --- Comments -----------------------------------------------------------------------
def add_comment(state: FeedState, comment: Comment) -> FeedState:
    """Prepend an optimistic comment and bump the post's count."""
    post_id = comment.post_id
    thread = state.comments.get(post_id, ())
    return replace(
        state,
        comments={**state.comments, post_id: (comment,) + thread},
        comment_counts={
            **state.comment_counts,
            post_id: state.comment_counts.get(post_id, 0) + 1,
        },
    )


def replace_comment(state: FeedState, placeholder_id: str, comment: Comment) -> FeedState:
    """Swap a placeholder for the authoritative record exactly once.

    If the record already arrived through a reload, the placeholder is simply
    dropped; if the placeholder vanished, the record is prepended.
    """
    post_id = comment.post_id
    thread = state.comments.get(post_id, ())
    ids = [item.id for item in thread]
    if comment.id in ids:
        updated = tuple(item for item in thread if item.id != placeholder_id)
    elif placeholder_id in ids:
        updated = tuple(comment if item.id == placeholder_id else item for item in thread)
    else:
        updated = (comment,) + thread
    return replace(state, comments={**state.comments, post_id: updated})


def remove_comment(state: FeedState, post_id: str, placeholder_id: str) -> FeedState:
    """Roll back an optimistic comment and its count increment."""
    thread = state.comments.get(post_id, ())
    return replace(
        state,
        comments={
            **state.comments,
            post_id: tuple(item for item in thread if item.id != placeholder_id),
        },
        comment_counts={
            **state.comment_counts,
            post_id: max(0, state.comment_counts.get(post_id, 1) - 1),
        },
    )


def set_comments(
    state: FeedState,
    post_id: str,
    items: Iterable[Comment],
    *,
    append: bool,
    has_more: bool,
    total: int | None = None,
) -> FeedState:
    """Store a fetched comment page.

    A first-page load keeps pending placeholders on top so an in-flight
    insert is neither lost nor duplicated when its echo lands.
    """
    current = state.comments.get(post_id, ())
    fetched = tuple(items)
    if append:
        known = {item.id for item in current}
        thread = current + tuple(item for item in fetched if item.id not in known)
    else:
        pending = tuple(item for item in current if item.is_placeholder)
        thread = pending + fetched
    counts = dict(state.comment_counts)
    if total is not None:
        counts[post_id] = total
    return replace(
        state,
        comments={**state.comments, post_id: thread},
        comment_counts=counts,
        has_more_comments={**state.has_more_comments, post_id: has_more},
    )


def merge_comment_counts(state: FeedState, counts: Mapping[str, int]) -> FeedState:
    if not counts:
        return state
    return replace(state, comment_counts={**state.comment_counts, **counts})


def toggle_thread(state: FeedState, post_id: str) -> FeedState:
    return replace(state, open_threads=state.open_threads ^ {post_id})


# --- Reports and auto-hide ----------------------------------------------------------
def merge_report_counts(state: FeedState, counts: Mapping[str, int]) -> FeedState:
    if not counts:
        return state
    return replace(state, report_counts={**state.report_counts, **counts})


def bump_report_count(state: FeedState, post_id: str, delta: int) -> FeedState:
    current = state.report_counts.get(post_id, 0)
    return replace(
        state,
        report_counts={**state.report_counts, post_id: max(0, current + delta)},
    )


def set_auto_hidden(state: FeedState, flags: Mapping[str, bool]) -> FeedState:
    if not flags:
        return state
    return replace(state, auto_hidden={**state.auto_hidden, **flags})


def show_anyway(state: FeedState, post_id: str) -> FeedState:
    return replace(state, shown_anyway=state.shown_anyway | {post_id})


class FeedStore:
    """Holds the current `FeedState` and replaces it whole on every dispatch."""

    def __init__(self, state: FeedState | None = None) -> None:
        self._state = state or FeedState()
        self._listeners: list[Callable[[FeedState], Any]] = []

    @property
    def state(self) -> FeedState:
        return self._state

    def dispatch(
        self,
        reducer: Callable[Concatenate[FeedState, P], FeedState],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> FeedState:
        """Compute the next state from the current one and publish it."""
        next_state = reducer(self._state, *args, **kwargs)
        if next_state is not self._state:
            self._state = next_state
            for listener in list(self._listeners):
                listener(next_state)
        return self._state

    def subscribe(self, listener: Callable[[FeedState], Any]) -> Callable[[], None]:
        """Register a render callback; returns a function that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe
