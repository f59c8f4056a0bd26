"""Shared fixtures: a throwaway SQLite forum database and a seeding helper."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from clanhub.core.database import Base
from clanhub.models.forum import (
    ForumCategory,
    ForumComment,
    ForumCommentVote,
    ForumPost,
    ForumVote,
)
from clanhub.models.user import Profile
from clanhub.modules.forum.ports import LoggingNotifier, StaticSession
from clanhub.modules.forum.store import ForumStore

CLAN_ID = "clan-1"
BASE_TIME = datetime(2025, 2, 13, 12, 0, tzinfo=timezone.utc)


class ForumSeeder:
    """Insert rows directly, bypassing the store under test."""

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self.session_factory = session_factory
        self._tick = 0

    def _next_time(self) -> datetime:
        self._tick += 1
        return BASE_TIME + timedelta(minutes=self._tick)

    async def _add(self, row):
        async with self.session_factory() as db:
            async with db.begin():
                db.add(row)
        return row

    async def profile(self, user_id: str, username: str | None = None, display_name: str | None = None):
        return await self._add(Profile(id=user_id, username=username, display_name=display_name))

    async def category(self, name: str, slug: str, sort_order: int = 0, clan_id: str = CLAN_ID):
        return await self._add(
            ForumCategory(clan_id=clan_id, name=name, slug=slug, sort_order=sort_order)
        )

    async def post(self, title: str, author_id: str = "u1", **values):
        values.setdefault("clan_id", CLAN_ID)
        values.setdefault("created_at", self._next_time())
        values.setdefault("updated_at", values["created_at"])
        return await self._add(ForumPost(title=title, author_id=author_id, **values))

    async def comment(self, post_id: str, content: str = "hi", author_id: str = "u1", **values):
        values.setdefault("created_at", self._next_time())
        values.setdefault("updated_at", values["created_at"])
        return await self._add(
            ForumComment(post_id=post_id, author_id=author_id, content=content, **values)
        )

    async def post_vote(self, post_id: str, user_id: str, vote_type: int):
        return await self._add(ForumVote(post_id=post_id, user_id=user_id, vote_type=vote_type))

    async def comment_vote(self, comment_id: str, user_id: str, vote_type: int):
        return await self._add(
            ForumCommentVote(comment_id=comment_id, user_id=user_id, vote_type=vote_type)
        )


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """SQLite database file with the full forum schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'forum.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    return ForumStore(session_factory)


@pytest.fixture
def seed(session_factory):
    return ForumSeeder(session_factory)


@pytest.fixture
def session():
    return StaticSession(current_user_id="u1", can_moderate=False)


@pytest.fixture
def notifier():
    return LoggingNotifier()
