"""
Linked thread creation.

Events and announcements get a forum post of their own so members
can discuss them; the post records where it came from.
"""

from dataclasses import dataclass
from enum import Enum

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from clanhub.modules.forum.errors import ForumStoreError
from clanhub.modules.forum.store import ForumStore


class SourceType(str, Enum):
    """Kinds of content that can own a forum thread."""

    EVENT = "event"
    ANNOUNCEMENT = "announcement"


class LinkedPostRequest(BaseModel):
    """Post to create for an external source."""

    model_config = ConfigDict(str_strip_whitespace=True)

    clan_id: str = Field(min_length=1)
    author_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=255)
    content: str = ""
    source_type: SourceType
    source_id: str = Field(min_length=1)
    category_slug: str = ""


@dataclass(frozen=True)
class LinkedPostResult:
    """Outcome of a linked post creation; exactly one field is set."""

    forum_post_id: str | None
    error: str | None


async def create_linked_forum_post(
    store: ForumStore,
    request: LinkedPostRequest,
) -> LinkedPostResult:
    """
    Create a forum post mirroring an event or announcement.

    The category is looked up by slug within the clan; when it does not
    exist the post is created without a category.

    Args:
        store: Forum store
        request: Post fields and source reference

    Returns:
        The new post id, or the store's error message
    """
    try:
        category = None
        if request.category_slug:
            category = await store.get_category_by_slug(request.clan_id, request.category_slug)

        post = await store.insert_post(
            {
                "clan_id": request.clan_id,
                "author_id": request.author_id,
                "title": request.title,
                "content": request.content or None,
                "category_id": category.id if category else None,
                "source_type": request.source_type.value,
                "source_id": request.source_id,
            }
        )
    except ForumStoreError as e:
        logger.error(f"Linked post for {request.source_type.value} {request.source_id} failed: {e}")
        return LinkedPostResult(forum_post_id=None, error=str(e))

    logger.info(f"Created forum post {post.id} for {request.source_type.value} {request.source_id}")
    return LinkedPostResult(forum_post_id=post.id, error=None)
