# tests/services/test_mutations.py
"""Tests for optimistic reactions, comments and reports."""

import asyncio

import pytest

from cancelme_feed.core.errors import (
    DuplicateReactionError,
    RateLimitError,
    RemoteWriteFailure,
    ValidationError,
)
from cancelme_feed.core.settings import Settings
from cancelme_feed.schemas.post import ReactionKind
from cancelme_feed.services.mutations import OptimisticMutationEngine
from cancelme_feed.services.state import set_comments


# --- Reactions ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_reaction_applies_before_remote_call(engine_under_test, store, remote) -> None:
    remote.gates["increment_reaction"] = asyncio.Event()
    task = asyncio.create_task(engine_under_test.react("p1", ReactionKind.LOL))
    await asyncio.sleep(0)

    post = store.state.post("p1")
    assert (post.lol, post.score) == (3, 5)
    assert remote.posts["p1"].lol == 2

    remote.gates["increment_reaction"].set()
    await task
    assert remote.posts["p1"].lol == 3
    assert store.state.post("p1").lol == 3


@pytest.mark.asyncio
async def test_reaction_failure_restores_exact_values(engine_under_test, store, remote, device) -> None:
    before = store.state.post("p1")
    remote.failures.add("increment_reaction")

    with pytest.raises(RemoteWriteFailure):
        await engine_under_test.react("p1", "genius")

    after = store.state.post("p1")
    assert (after.genius, after.score) == (before.genius, before.score)
    assert not device.has_reacted("p1", ReactionKind.GENIUS)


@pytest.mark.asyncio
async def test_reaction_failure_on_zero_counters_stays_at_zero(engine_under_test, store, remote) -> None:
    remote.failures.add("increment_reaction")
    with pytest.raises(RemoteWriteFailure):
        await engine_under_test.react("p2", ReactionKind.WTF)
    post = store.state.post("p2")
    assert (post.wtf, post.score) == (0, 0)


@pytest.mark.asyncio
async def test_same_reaction_twice_is_blocked(engine_under_test, store, remote) -> None:
    await engine_under_test.react("p1", ReactionKind.LOL)
    with pytest.raises(DuplicateReactionError):
        await engine_under_test.react("p1", ReactionKind.LOL)

    # A different kind on the same post is a separate marker.
    await engine_under_test.react("p1", ReactionKind.CRINGE)
    assert len(remote.called("increment_reaction")) == 2
    assert store.state.post("p1").score == 6


@pytest.mark.asyncio
async def test_double_tap_is_stopped_by_marker_not_async_boundary(engine_under_test, remote) -> None:
    remote.gates["increment_reaction"] = asyncio.Event()
    first = asyncio.create_task(engine_under_test.react("p2", ReactionKind.LOL))
    await asyncio.sleep(0)
    with pytest.raises(DuplicateReactionError):
        await engine_under_test.react("p2", ReactionKind.LOL)
    remote.gates["increment_reaction"].set()
    await first
    assert len(remote.called("increment_reaction")) == 1


@pytest.mark.asyncio
async def test_reactions_are_rate_limited(engine_under_test, remote, clock) -> None:
    # Four reactions on p1 inside 10s fill the per-post scope.
    for kind in list(ReactionKind):
        await engine_under_test.react("p1", kind)
    engine_under_test._device.clear_reacted("p1", ReactionKind.LOL)
    with pytest.raises(RateLimitError):
        await engine_under_test.react("p1", ReactionKind.LOL)
    assert len(remote.called("increment_reaction")) == 4

    clock[0] += 10_000
    await engine_under_test.react("p1", ReactionKind.LOL)


# --- Comments -----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_comment_placeholder_replaced_by_server_record(engine_under_test, store, remote, device) -> None:
    device.set_display_name("Zoé")
    remote.gates["insert_comment"] = asyncio.Event()
    task = asyncio.create_task(engine_under_test.add_comment("p1", "  so   true  "))
    await asyncio.sleep(0)

    pending = store.state.comments["p1"]
    assert len(pending) == 1
    assert pending[0].is_placeholder
    assert pending[0].content == "so true"
    assert pending[0].display_name == "Zoé"
    assert store.state.comment_counts["p1"] == 1

    remote.gates["insert_comment"].set()
    saved = await task

    thread = store.state.comments["p1"]
    assert [c.id for c in thread] == [saved.id]
    assert not thread[0].is_placeholder
    assert store.state.comment_counts["p1"] == 1


@pytest.mark.asyncio
async def test_comment_echo_from_reload_before_insert_returns(engine_under_test, store, remote) -> None:
    remote.gates["insert_comment"] = asyncio.Event()
    task = asyncio.create_task(engine_under_test.add_comment("p1", "first!"))
    await asyncio.sleep(0)
    placeholder = store.state.comments["p1"][0]

    # Simulate the store committing and a thread reload landing first.
    echo = placeholder.model_copy(update={"id": "1000"})
    store.dispatch(set_comments, "p1", [echo], append=False, has_more=False, total=1)
    remote.gates["insert_comment"].set()
    saved = await task

    thread = store.state.comments["p1"]
    assert [c.id for c in thread] == [saved.id] == ["1000"]


@pytest.mark.asyncio
async def test_comment_failure_removes_placeholder(engine_under_test, store, remote) -> None:
    remote.failures.add("insert_comment")
    with pytest.raises(RemoteWriteFailure) as excinfo:
        await engine_under_test.add_comment("p1", "hello")
    assert excinfo.value.message == "Ajout impossible."
    assert store.state.comments["p1"] == ()
    assert store.state.comment_counts["p1"] == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("   ", "Commentaire vide."),
        ("x" * 1001, "Commentaire trop long (1000 caractères max)."),
        ("t'es un SLUR1 toi", "Contenu refusé."),
    ],
)
async def test_comment_validation_rejects_before_any_change(
    engine_under_test, store, remote, ledger, text, message
) -> None:
    with pytest.raises(ValidationError) as excinfo:
        await engine_under_test.add_comment("p1", text)
    assert excinfo.value.message == message
    assert store.state.comments == {}
    assert remote.called("insert_comment") == []
    assert ledger.read("comments:global") == []


@pytest.mark.asyncio
async def test_comment_rate_limit_blocks_third_on_same_post(engine_under_test, store, remote) -> None:
    await engine_under_test.add_comment("p1", "one")
    await engine_under_test.add_comment("p1", "two")
    with pytest.raises(RateLimitError):
        await engine_under_test.add_comment("p1", "three")
    assert len(remote.called("insert_comment")) == 2
    assert len(store.state.comments["p1"]) == 2


# --- Reports ------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_report_counts_optimistically_and_sends_fingerprint(engine_under_test, store, remote, device) -> None:
    remote.gates["insert_report"] = asyncio.Event()
    task = asyncio.create_task(engine_under_test.report("p1", "  spam "))
    await asyncio.sleep(0)
    assert store.state.report_counts["p1"] == 1

    remote.gates["insert_report"].set()
    await task
    sent = remote.reports[0]
    assert sent.reason == "spam"
    assert sent.reporter_fingerprint == device.fingerprint()
    assert store.state.auto_hidden["p1"] is False


@pytest.mark.asyncio
async def test_report_reaching_threshold_hides_post(engine_under_test, store) -> None:
    for _ in range(3):
        await engine_under_test.report("p1")
    assert store.state.auto_hidden["p1"] is True
    assert [p.id for p in store.state.visible_posts()] == ["p2"]


@pytest.mark.asyncio
async def test_report_failure_reverts_count(engine_under_test, store, remote) -> None:
    remote.failures.add("insert_report")
    with pytest.raises(RemoteWriteFailure):
        await engine_under_test.report("p1", None)
    assert store.state.report_counts["p1"] == 0
    assert "p1" not in store.state.auto_hidden


# --- Configured comment gate ----------------------------------------------------------
@pytest.mark.asyncio
async def test_comment_gate_follows_configured_patterns_and_length(
    store, remote, limiter, device, moderation
) -> None:
    config = Settings(banned_patterns=[r"\bspamword\b"], comment_max_length=2000)
    engine = OptimisticMutationEngine(store, remote, limiter, device, moderation, config=config)

    with pytest.raises(ValidationError) as excinfo:
        await engine.add_comment("p1", "buy spamword now")
    assert excinfo.value.message == "Contenu refusé."
    assert remote.called("insert_comment") == []

    saved = await engine.add_comment("p1", "y" * 1500)
    assert len(saved.content) == 1500
    assert [c.id for c in store.state.comments["p1"]] == [saved.id]
