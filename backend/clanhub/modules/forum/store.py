"""
Forum Store - query layer over the forum tables.

Every method runs in its own short transaction and reports failures
as ForumStoreError, so callers see one error type per remote call.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable

from loguru import logger
from sqlalchemy import delete, func, inspect, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clanhub.core.database import get_session_factory, utcnow
from clanhub.models.forum import (
    ForumCategory,
    ForumComment,
    ForumCommentVote,
    ForumPost,
    ForumVote,
)
from clanhub.models.user import Profile
from clanhub.modules.forum.errors import ForumStoreError
from clanhub.modules.forum.types import SortMode, VoteTarget

FORUM_TABLES = frozenset(
    {
        ForumCategory.__tablename__,
        ForumPost.__tablename__,
        ForumComment.__tablename__,
        ForumVote.__tablename__,
        ForumCommentVote.__tablename__,
        Profile.__tablename__,
    }
)

_NO_SYNC = {"synchronize_session": False}


def _vote_model(target: VoteTarget) -> tuple[Any, Any, Any]:
    """Return (vote model, vote fk column, voted entity model)."""
    if target is VoteTarget.POST:
        return ForumVote, ForumVote.post_id, ForumPost
    return ForumCommentVote, ForumCommentVote.comment_id, ForumComment


class ForumStore:
    """
    Data access for categories, posts, comments, votes and profiles.

    Usage:
        store = ForumStore()
        posts, total = await store.list_posts(clan_id, start=0, end=19)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        """Initialize store with a session factory (default: app database)."""
        self._session_factory = session_factory or get_session_factory()

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    yield db
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Forum store {operation} failed: {e}")
            raise ForumStoreError(operation, str(e)) from e

    # ==================== Schema ====================

    async def list_table_names(self) -> set[str]:
        """Names of the tables present in the connected database."""
        async with self._transaction("list_table_names") as db:
            names = await db.run_sync(
                lambda sync_db: inspect(sync_db.connection()).get_table_names()
            )
        return set(names)

    # ==================== Categories ====================

    async def list_categories(self, clan_id: str) -> list[ForumCategory]:
        """Get a clan's categories in display order."""
        query = (
            select(ForumCategory)
            .where(ForumCategory.clan_id == clan_id)
            .order_by(ForumCategory.sort_order, ForumCategory.name)
        )
        async with self._transaction("list_categories") as db:
            result = await db.scalars(query)
            return list(result.all())

    async def get_category_by_slug(self, clan_id: str, slug: str) -> ForumCategory | None:
        """Get category by slug within a clan."""
        query = select(ForumCategory).where(
            ForumCategory.clan_id == clan_id,
            ForumCategory.slug == slug,
        )
        async with self._transaction("get_category_by_slug") as db:
            result = await db.scalars(query)
            return result.first()

    # ==================== Profiles ====================

    async def get_profiles(self, user_ids: Iterable[str]) -> list[Profile]:
        """Get profiles for a batch of user ids."""
        query = select(Profile).where(Profile.id.in_(list(user_ids)))
        async with self._transaction("get_profiles") as db:
            result = await db.scalars(query)
            return list(result.all())

    # ==================== Posts ====================

    async def list_posts(
        self,
        clan_id: str,
        *,
        start: int,
        end: int,
        category_id: str | None = None,
        search: str = "",
        sort: SortMode = SortMode.NEW,
    ) -> tuple[list[ForumPost], int]:
        """
        Get one window of a clan's posts plus the total match count.

        Args:
            clan_id: Clan whose posts are listed
            start: First row index (inclusive)
            end: Last row index (inclusive)
            category_id: Filter by category
            search: Case-insensitive substring of title or content
            sort: `top` orders by score, `new` and `hot` by creation time

        Returns:
            (rows, total) with pinned posts always first
        """
        conditions = [ForumPost.clan_id == clan_id]
        if category_id:
            conditions.append(ForumPost.category_id == category_id)

        term = search.strip()
        if term:
            conditions.append(
                or_(
                    ForumPost.title.icontains(term, autoescape=True),
                    ForumPost.content.icontains(term, autoescape=True),
                )
            )

        order = [ForumPost.is_pinned.desc()]
        if sort is SortMode.TOP:
            order.append(ForumPost.score.desc())
        order.append(ForumPost.created_at.desc())

        count_query = select(func.count()).select_from(ForumPost).where(*conditions)
        page_query = (
            select(ForumPost)
            .where(*conditions)
            .order_by(*order)
            .offset(start)
            .limit(max(end - start + 1, 0))
        )

        async with self._transaction("list_posts") as db:
            total = await db.scalar(count_query)
            result = await db.scalars(page_query)
            return list(result.all()), total or 0

    async def get_post(self, post_id: str) -> ForumPost | None:
        """Get post by ID."""
        async with self._transaction("get_post") as db:
            return await db.get(ForumPost, post_id)

    async def get_comment_count(self, post_id: str) -> int:
        """Read the denormalized comment count of a post."""
        query = select(ForumPost.comment_count).where(ForumPost.id == post_id)
        async with self._transaction("get_comment_count") as db:
            count = await db.scalar(query)
        return count or 0

    async def insert_post(self, values: dict[str, Any]) -> ForumPost:
        """Create new post from column values."""
        post = ForumPost(**values)
        async with self._transaction("insert_post") as db:
            db.add(post)
            await db.flush()
        return post

    async def update_post(self, post_id: str, values: dict[str, Any]) -> ForumPost | None:
        """Apply a partial update; returns the refreshed row or None if missing."""
        async with self._transaction("update_post") as db:
            post = await db.get(ForumPost, post_id)
            if post is None:
                return None
            for key, value in values.items():
                setattr(post, key, value)
            await db.flush()
            return post

    async def delete_post(self, post_id: str) -> bool:
        """Delete a post together with its comments and all their votes."""
        comment_ids = select(ForumComment.id).where(ForumComment.post_id == post_id)

        async with self._transaction("delete_post") as db:
            await db.execute(
                delete(ForumCommentVote)
                .where(ForumCommentVote.comment_id.in_(comment_ids))
                .execution_options(**_NO_SYNC)
            )
            await db.execute(
                delete(ForumComment)
                .where(ForumComment.post_id == post_id)
                .execution_options(**_NO_SYNC)
            )
            await db.execute(
                delete(ForumVote)
                .where(ForumVote.post_id == post_id)
                .execution_options(**_NO_SYNC)
            )
            result = await db.execute(
                delete(ForumPost)
                .where(ForumPost.id == post_id)
                .execution_options(**_NO_SYNC)
            )
        return result.rowcount > 0

    # ==================== Comments ====================

    async def list_comments(self, post_id: str) -> list[ForumComment]:
        """Get a post's comments, oldest first."""
        query = (
            select(ForumComment)
            .where(ForumComment.post_id == post_id)
            .order_by(ForumComment.created_at)
        )
        async with self._transaction("list_comments") as db:
            result = await db.scalars(query)
            return list(result.all())

    async def insert_comment(
        self,
        post_id: str,
        author_id: str,
        content: str,
        parent_comment_id: str | None = None,
    ) -> ForumComment:
        """
        Create a comment and bump the post's comment count.

        Args:
            post_id: Post being commented on
            author_id: Author user ID
            content: Comment text
            parent_comment_id: Comment being replied to (same post)

        Returns:
            Created comment
        """
        async with self._transaction("insert_comment") as db:
            if parent_comment_id:
                parent_post_id = await db.scalar(
                    select(ForumComment.post_id).where(ForumComment.id == parent_comment_id)
                )
                if parent_post_id != post_id:
                    raise ForumStoreError(
                        "insert_comment", f"parent {parent_comment_id} is not a comment of {post_id}"
                    )

            comment = ForumComment(
                post_id=post_id,
                parent_comment_id=parent_comment_id,
                author_id=author_id,
                content=content,
            )
            db.add(comment)
            await db.flush()

            await db.execute(
                update(ForumPost)
                .where(ForumPost.id == post_id)
                .values(comment_count=ForumPost.comment_count + 1)
                .execution_options(**_NO_SYNC)
            )
        return comment

    async def update_comment(self, comment_id: str, content: str) -> bool:
        """Replace comment content."""
        async with self._transaction("update_comment") as db:
            result = await db.execute(
                update(ForumComment)
                .where(ForumComment.id == comment_id)
                .values(content=content, updated_at=utcnow())
                .execution_options(**_NO_SYNC)
            )
        return result.rowcount > 0

    async def delete_comment_tree(self, comment_id: str) -> int:
        """
        Delete a comment and every reply beneath it.

        Returns:
            Number of comments removed (0 if the comment does not exist)
        """
        async with self._transaction("delete_comment_tree") as db:
            post_id = await db.scalar(
                select(ForumComment.post_id).where(ForumComment.id == comment_id)
            )
            if post_id is None:
                return 0

            subtree = [comment_id]
            seen = {comment_id}
            frontier = [comment_id]
            while frontier:
                children = await db.scalars(
                    select(ForumComment.id).where(ForumComment.parent_comment_id.in_(frontier))
                )
                frontier = [child for child in children.all() if child not in seen]
                seen.update(frontier)
                subtree.extend(frontier)

            await db.execute(
                delete(ForumCommentVote)
                .where(ForumCommentVote.comment_id.in_(subtree))
                .execution_options(**_NO_SYNC)
            )
            await db.execute(
                delete(ForumComment)
                .where(ForumComment.id.in_(subtree))
                .execution_options(**_NO_SYNC)
            )
            await db.execute(
                update(ForumPost)
                .where(ForumPost.id == post_id)
                .values(comment_count=ForumPost.comment_count - len(subtree))
                .execution_options(**_NO_SYNC)
            )
        return len(subtree)

    # ==================== Votes ====================

    async def get_user_votes(
        self,
        target: VoteTarget,
        user_id: str,
        entity_ids: Iterable[str],
    ) -> dict[str, int]:
        """Map entity id -> vote_type for one user's votes."""
        model, fk, _ = _vote_model(target)
        query = select(fk, model.vote_type).where(
            model.user_id == user_id,
            fk.in_(list(entity_ids)),
        )
        async with self._transaction("get_user_votes") as db:
            result = await db.execute(query)
            return {entity_id: vote_type for entity_id, vote_type in result.all()}

    async def upsert_vote(
        self,
        target: VoteTarget,
        entity_id: str,
        user_id: str,
        vote_type: int,
    ) -> None:
        """Create or overwrite the single vote row of (entity, user)."""
        model, fk, _ = _vote_model(target)
        async with self._transaction("upsert_vote") as db:
            dialect = db.get_bind().dialect.name
            insert = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = insert(model).values(
                {fk.key: entity_id, "user_id": user_id, "vote_type": vote_type}
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[fk.key, "user_id"],
                set_={"vote_type": vote_type},
            )
            await db.execute(stmt)

    async def delete_vote(self, target: VoteTarget, entity_id: str, user_id: str) -> None:
        """Remove the vote row of (entity, user) if present."""
        model, fk, _ = _vote_model(target)
        async with self._transaction("delete_vote") as db:
            await db.execute(
                delete(model)
                .where(fk == entity_id, model.user_id == user_id)
                .execution_options(**_NO_SYNC)
            )

    async def increment_score(self, target: VoteTarget, entity_id: str, delta: int) -> int:
        """
        Atomically add `delta` to an entity's score.

        Returns:
            The score after the increment
        """
        _, _, entity = _vote_model(target)
        async with self._transaction("increment_score") as db:
            result = await db.execute(
                update(entity)
                .where(entity.id == entity_id)
                .values(score=entity.score + delta)
                .execution_options(**_NO_SYNC)
            )
            if result.rowcount == 0:
                raise ForumStoreError("increment_score", f"{target.value} {entity_id} not found")
            score = await db.scalar(select(entity.score).where(entity.id == entity_id))
        return score or 0
