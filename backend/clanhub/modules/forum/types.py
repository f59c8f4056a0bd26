"""
Forum view types.

Immutable, session-relative views of posts and comments as the
controller holds them, plus the enums driving list and view state.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from clanhub.modules.forum.categories import CategoryDirectory


class SortMode(str, Enum):
    """Post list ordering."""

    NEW = "new"
    TOP = "top"
    HOT = "hot"


class ViewMode(str, Enum):
    """Forum screen state."""

    LIST = "list"
    CREATE = "create"
    DETAIL = "detail"


class VoteTarget(str, Enum):
    """Kind of entity a vote applies to."""

    POST = "post"
    COMMENT = "comment"


class StoreReadiness(str, Enum):
    """Result of the startup schema probe."""

    READY = "ready"
    NOT_PROVISIONED = "not_provisioned"
    UNAVAILABLE = "unavailable"


class MessageKey(str, Enum):
    """Static keys for user-visible failure notifications."""

    VOTE_FAILED = "voteFailed"
    SAVE_FAILED = "saveFailed"
    DELETE_FAILED = "deleteFailed"
    DELETE_COMMENT_FAILED = "deleteCommentFailed"
    LOAD_FAILED = "loadFailed"


@dataclass(frozen=True)
class Category:
    """Clan category snapshot."""

    id: str
    clan_id: str
    name: str
    slug: str
    description: str | None = None
    icon: str | None = None
    sort_order: int = 0

    @classmethod
    def from_row(cls, row: Any) -> "Category":
        return cls(
            id=row.id,
            clan_id=row.clan_id,
            name=row.name,
            slug=row.slug,
            description=row.description,
            icon=row.icon,
            sort_order=row.sort_order or 0,
        )


@dataclass(frozen=True)
class PostView:
    """Post enriched with author, category and the current user's vote."""

    id: str
    clan_id: str
    category_id: str | None
    author_id: str
    title: str
    content: str | None
    is_pinned: bool
    is_locked: bool
    score: int
    comment_count: int
    created_at: datetime
    updated_at: datetime
    source_type: str | None = None
    source_id: str | None = None

    # Derived, not persisted
    author_name: str = "Unknown"
    category_name: str = ""
    category_slug: str = ""
    user_vote: int = 0

    @classmethod
    def from_row(
        cls,
        row: Any,
        *,
        author_names: dict[str, str],
        categories: "CategoryDirectory",
        user_vote: int = 0,
    ) -> "PostView":
        """
        Build a view from a forum_posts row.

        Args:
            row: ORM row or any object with the post columns
            author_names: Resolved user id -> display name map
            categories: Category directory used for name/slug lookup
            user_vote: Current user's vote on this post
        """
        category = categories.get(row.category_id) if row.category_id else None
        return cls(
            id=row.id,
            clan_id=row.clan_id,
            category_id=row.category_id,
            author_id=row.author_id,
            title=row.title,
            content=row.content,
            is_pinned=bool(row.is_pinned),
            is_locked=bool(row.is_locked),
            score=row.score or 0,
            comment_count=row.comment_count or 0,
            created_at=row.created_at,
            updated_at=row.updated_at,
            source_type=row.source_type,
            source_id=row.source_id,
            author_name=author_names.get(row.author_id, "Unknown"),
            category_name=category.name if category else "",
            category_slug=category.slug if category else "",
            user_vote=user_vote,
        )


@dataclass(frozen=True)
class CommentView:
    """Comment enriched with author and vote; `replies` holds its children."""

    id: str
    post_id: str
    parent_comment_id: str | None
    author_id: str
    content: str
    score: int
    created_at: datetime
    updated_at: datetime

    author_name: str = "Unknown"
    user_vote: int = 0
    replies: tuple["CommentView", ...] = ()

    @classmethod
    def from_row(
        cls,
        row: Any,
        *,
        author_names: dict[str, str],
        user_vote: int = 0,
    ) -> "CommentView":
        return cls(
            id=row.id,
            post_id=row.post_id,
            parent_comment_id=row.parent_comment_id,
            author_id=row.author_id,
            content=row.content,
            score=row.score or 0,
            created_at=row.created_at,
            updated_at=row.updated_at,
            author_name=author_names.get(row.author_id, "Unknown"),
            user_vote=user_vote,
        )
