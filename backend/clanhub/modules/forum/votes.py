"""
Vote Reconciler - toggles a user's vote and keeps the aggregate score.
"""

from dataclasses import dataclass

from loguru import logger

from clanhub.modules.forum.errors import ForumStoreError, VoteFailedError
from clanhub.modules.forum.store import ForumStore
from clanhub.modules.forum.types import CommentView, PostView, VoteTarget

VOTE_DIRECTIONS = (1, -1)


@dataclass(frozen=True)
class VoteOutcome:
    """Score and vote to apply to every cached copy of the entity."""

    target: VoteTarget
    entity_id: str
    score: int
    user_vote: int


class VoteReconciler:
    """
    Applies vote toggles against the store.

    Clicking the same direction twice clears the vote, the opposite
    direction flips it. Each call issues exactly one vote-row write and
    one score write, in that order.

    Usage:
        reconciler = VoteReconciler(store)
        outcome = await reconciler.vote(VoteTarget.POST, post, user_id, 1)
    """

    def __init__(self, store: ForumStore) -> None:
        self.store = store

    async def vote(
        self,
        target: VoteTarget,
        entity: PostView | CommentView | None,
        current_user_id: str,
        direction: int,
    ) -> VoteOutcome | None:
        """
        Toggle the user's vote on a loaded post or comment.

        Args:
            target: Whether `entity` is a post or a comment
            entity: The cached entity, or None if it is not loaded
            current_user_id: Voting user ("" when signed out)
            direction: +1 or -1

        Returns:
            New score and vote, or None when nothing was done

        Raises:
            ValueError: direction is not +1 or -1
            VoteFailedError: either remote write failed; no cache should change
        """
        if direction not in VOTE_DIRECTIONS:
            raise ValueError(f"Vote direction must be +1 or -1, got {direction}")
        if not current_user_id or entity is None:
            return None

        current_vote = entity.user_vote or 0
        new_vote = 0 if current_vote == direction else direction

        try:
            if new_vote == 0:
                await self.store.delete_vote(target, entity.id, current_user_id)
            else:
                await self.store.upsert_vote(target, entity.id, current_user_id, new_vote)
        except ForumStoreError as e:
            raise VoteFailedError(entity.id, vote_recorded=False, cause=e) from e

        delta = new_vote - current_vote
        try:
            score = await self.store.increment_score(target, entity.id, delta)
        except ForumStoreError as e:
            # The vote row stays written; the aggregate is now behind the ledger
            logger.error(f"Score update for {target.value} {entity.id} failed after vote was recorded")
            raise VoteFailedError(entity.id, vote_recorded=True, cause=e) from e

        logger.debug(
            f"Vote {target.value} {entity.id} by {current_user_id}: "
            f"{current_vote} -> {new_vote}, score {score}"
        )
        return VoteOutcome(target=target, entity_id=entity.id, score=score, user_vote=new_vote)
