from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from clanhub.models.forum import ForumPost, ForumVote
from clanhub.modules.forum.errors import ForumStoreError, VoteFailedError
from clanhub.modules.forum.types import PostView, VoteTarget
from clanhub.modules.forum.votes import VoteReconciler

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_post(score: int = 5, user_vote: int = 0) -> PostView:
    return PostView(
        id="p1",
        clan_id="clan-1",
        category_id=None,
        author_id="u2",
        title="Raid night",
        content=None,
        is_pinned=False,
        is_locked=False,
        score=score,
        comment_count=0,
        created_at=T0,
        updated_at=T0,
        user_vote=user_vote,
    )


@pytest.fixture
def mock_store():
    """Store whose score column starts at 5 and applies deltas."""
    store = AsyncMock()
    scores = {"p1": 5}

    async def increment(target, entity_id, delta):
        scores[entity_id] += delta
        return scores[entity_id]

    store.increment_score.side_effect = increment
    return store


@pytest.mark.asyncio
async def test_upvote_toggle_and_flip(mock_store):
    reconciler = VoteReconciler(mock_store)
    post = make_post(score=5, user_vote=0)

    outcome = await reconciler.vote(VoteTarget.POST, post, "u1", 1)
    assert (outcome.score, outcome.user_vote) == (6, 1)
    mock_store.upsert_vote.assert_awaited_once_with(VoteTarget.POST, "p1", "u1", 1)
    mock_store.increment_score.assert_awaited_with(VoteTarget.POST, "p1", 1)

    post = replace(post, score=outcome.score, user_vote=outcome.user_vote)
    outcome = await reconciler.vote(VoteTarget.POST, post, "u1", 1)
    assert (outcome.score, outcome.user_vote) == (5, 0)
    mock_store.delete_vote.assert_awaited_once_with(VoteTarget.POST, "p1", "u1")


@pytest.mark.asyncio
async def test_direction_flip_moves_score_by_two(mock_store):
    mock_store.increment_score.side_effect = None
    mock_store.increment_score.return_value = 4
    reconciler = VoteReconciler(mock_store)

    outcome = await reconciler.vote(VoteTarget.POST, make_post(score=6, user_vote=1), "u1", -1)

    assert (outcome.score, outcome.user_vote) == (4, -1)
    mock_store.upsert_vote.assert_awaited_once_with(VoteTarget.POST, "p1", "u1", -1)
    mock_store.increment_score.assert_awaited_once_with(VoteTarget.POST, "p1", -2)


@pytest.mark.asyncio
async def test_exactly_one_write_of_each_kind(mock_store):
    await VoteReconciler(mock_store).vote(VoteTarget.POST, make_post(), "u1", -1)
    assert mock_store.upsert_vote.await_count + mock_store.delete_vote.await_count == 1
    assert mock_store.increment_score.await_count == 1


@pytest.mark.asyncio
async def test_signed_out_or_unknown_entity_is_noop(mock_store):
    reconciler = VoteReconciler(mock_store)
    assert await reconciler.vote(VoteTarget.POST, make_post(), "", 1) is None
    assert await reconciler.vote(VoteTarget.POST, None, "u1", 1) is None
    mock_store.upsert_vote.assert_not_called()
    mock_store.increment_score.assert_not_called()


@pytest.mark.asyncio
async def test_invalid_direction(mock_store):
    with pytest.raises(ValueError):
        await VoteReconciler(mock_store).vote(VoteTarget.POST, make_post(), "u1", 0)


@pytest.mark.asyncio
async def test_vote_row_failure_skips_score(mock_store):
    mock_store.upsert_vote.side_effect = ForumStoreError("upsert_vote", "timeout")

    with pytest.raises(VoteFailedError) as exc_info:
        await VoteReconciler(mock_store).vote(VoteTarget.POST, make_post(), "u1", 1)

    assert exc_info.value.vote_recorded is False
    mock_store.increment_score.assert_not_called()


@pytest.mark.asyncio
async def test_score_failure_reports_recorded_vote(mock_store):
    mock_store.increment_score.side_effect = ForumStoreError("increment_score", "timeout")

    with pytest.raises(VoteFailedError) as exc_info:
        await VoteReconciler(mock_store).vote(VoteTarget.POST, make_post(), "u1", 1)

    assert exc_info.value.vote_recorded is True
    mock_store.upsert_vote.assert_awaited_once()


@pytest.mark.asyncio
async def test_ledger_and_score_stay_consistent(store, seed, session_factory):
    row = await seed.post("Raid night", author_id="u2")
    reconciler = VoteReconciler(store)
    post = make_post(score=0, user_vote=0)
    post = replace(post, id=row.id)

    for user_id, direction in [("u1", 1), ("u3", 1), ("u1", -1), ("u3", 1)]:
        votes = await store.get_user_votes(VoteTarget.POST, user_id, [row.id])
        current = replace(post, user_vote=votes.get(row.id, 0))
        outcome = await reconciler.vote(VoteTarget.POST, current, user_id, direction)
        post = replace(post, score=outcome.score)

    async with session_factory() as db:
        ledger = await db.scalar(select(func.sum(ForumVote.vote_type)).where(ForumVote.post_id == row.id))
        rows = await db.scalar(select(func.count()).select_from(ForumVote).where(ForumVote.post_id == row.id))
        score = await db.scalar(select(ForumPost.score).where(ForumPost.id == row.id))

    # u1 flipped to -1, u3 toggled off
    assert rows == 1
    assert ledger == -1
    assert score == -1
    assert post.score == -1
