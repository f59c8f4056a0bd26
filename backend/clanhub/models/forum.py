"""
Forum models for clan discussions.

Includes:
- Categories (per clan sections)
- Posts (threads)
- Comments (threaded replies)
- Votes on posts and comments
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from clanhub.core.database import Base, new_id, utcnow


class ForumCategory(Base):
    """Forum category/section of a clan."""

    __tablename__ = "forum_categories"
    __table_args__ = (UniqueConstraint("clan_id", "slug"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    clan_id: Mapped[str] = mapped_column(String(36), index=True)
    name: Mapped[str] = mapped_column(String(100))
    slug: Mapped[str] = mapped_column(String(100), index=True)
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str | None] = mapped_column(String(50))
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    def __repr__(self) -> str:
        return f"<ForumCategory {self.name}>"


class ForumPost(Base):
    """Forum post/thread."""

    __tablename__ = "forum_posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    clan_id: Mapped[str] = mapped_column(String(36), index=True)
    category_id: Mapped[str | None] = mapped_column(
        ForeignKey("forum_categories.id", ondelete="SET NULL")
    )
    author_id: Mapped[str] = mapped_column(String(36), index=True)

    title: Mapped[str] = mapped_column(String(255))
    content: Mapped[str | None] = mapped_column(Text)

    # Status
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False)

    # Stats (denormalized)
    score: Mapped[int] = mapped_column(Integer, default=0)
    comment_count: Mapped[int] = mapped_column(Integer, default=0)

    # Linked source (event, announcement)
    source_type: Mapped[str | None] = mapped_column(String(30))
    source_id: Mapped[str | None] = mapped_column(String(36))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<ForumPost {self.title[:30]}>"


class ForumComment(Base):
    """Comment on a post, optionally replying to another comment."""

    __tablename__ = "forum_comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    post_id: Mapped[str] = mapped_column(
        ForeignKey("forum_posts.id", ondelete="CASCADE"), index=True
    )
    parent_comment_id: Mapped[str | None] = mapped_column(
        ForeignKey("forum_comments.id", ondelete="CASCADE"), index=True
    )
    author_id: Mapped[str] = mapped_column(String(36), index=True)

    content: Mapped[str] = mapped_column(Text)

    # Stats (denormalized)
    score: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<ForumComment {self.id} on post {self.post_id}>"


class ForumVote(Base):
    """Up/down vote on a post. One row per user per post."""

    __tablename__ = "forum_votes"
    __table_args__ = (UniqueConstraint("post_id", "user_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    post_id: Mapped[str] = mapped_column(
        ForeignKey("forum_posts.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    vote_type: Mapped[int] = mapped_column(SmallInteger)  # -1 or 1
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ForumCommentVote(Base):
    """Up/down vote on a comment. One row per user per comment."""

    __tablename__ = "forum_comment_votes"
    __table_args__ = (UniqueConstraint("comment_id", "user_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    comment_id: Mapped[str] = mapped_column(
        ForeignKey("forum_comments.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    vote_type: Mapped[int] = mapped_column(SmallInteger)  # -1 or 1
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
