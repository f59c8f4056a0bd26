"""
Pagination Coordinator - fixed-size windows over a clan's posts.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger

from clanhub.core.config import settings
from clanhub.modules.forum.authors import resolve_author_names
from clanhub.modules.forum.categories import CategoryDirectory
from clanhub.modules.forum.ranking import sort_page_by_hot
from clanhub.modules.forum.store import ForumStore
from clanhub.modules.forum.types import PostView, SortMode, VoteTarget

PAGE_SIZE = settings.forum_page_size


@dataclass(frozen=True)
class PageWindow:
    """Inclusive row range of one page."""

    page: int
    page_size: int = PAGE_SIZE

    @property
    def start(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def end(self) -> int:
        return self.start + self.page_size - 1


@dataclass(frozen=True)
class PostFilters:
    """List filters chosen by the user."""

    category_id: str = ""
    search: str = ""
    sort: SortMode = SortMode.NEW


@dataclass(frozen=True)
class PostPage:
    """One fetched page."""

    posts: tuple[PostView, ...]
    total_count: int
    window: PageWindow


def total_pages(total_count: int, page_size: int = PAGE_SIZE) -> int:
    """Number of pages needed for `total_count` rows."""
    return math.ceil(total_count / page_size)


def clamp_page(value: Any, page_count: int) -> int | None:
    """
    Parse a page number from navigation state.

    Returns:
        None for non-numeric input, otherwise the page clamped to
        [1, page_count] (or 1 when there are no pages)
    """
    try:
        page = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return max(1, min(page, max(page_count, 1)))


class PaginationCoordinator:
    """
    Fetches the current page of posts for a set of filters.

    Hot ordering re-sorts only the fetched page; the store orders that
    page by recency, so "hot" is approximate across page boundaries.

    Usage:
        paginator = PaginationCoordinator(store)
        paginator.set_page(2)
        page = await paginator.fetch(clan_id, filters, categories, user_id)
    """

    def __init__(self, store: ForumStore, page_size: int = PAGE_SIZE) -> None:
        self.store = store
        self.page_size = page_size
        self.page = 1
        self.total_count = 0

    @property
    def window(self) -> PageWindow:
        return PageWindow(page=self.page, page_size=self.page_size)

    @property
    def page_count(self) -> int:
        return total_pages(self.total_count, self.page_size)

    def set_page(self, page: int) -> None:
        """Move to a page (pages start at 1)."""
        self.page = max(1, int(page))

    async def fetch(
        self,
        clan_id: str,
        filters: PostFilters,
        categories: CategoryDirectory,
        current_user_id: str,
        now: datetime | None = None,
    ) -> PostPage:
        """
        Load and enrich the current page.

        Args:
            clan_id: Clan whose posts are listed
            filters: Category, search and sort
            categories: Directory used for category names and slugs
            current_user_id: User whose votes fill `user_vote` ("" for none)
            now: Reference time for hot ranking

        Returns:
            Page rows and total count
        """
        window = self.window
        rows, total = await self.store.list_posts(
            clan_id,
            start=window.start,
            end=window.end,
            category_id=filters.category_id or None,
            search=filters.search,
            sort=filters.sort,
        )

        author_names = await resolve_author_names(self.store, (row.author_id for row in rows))

        votes: dict[str, int] = {}
        if current_user_id and rows:
            votes = await self.store.get_user_votes(
                VoteTarget.POST, current_user_id, [row.id for row in rows]
            )

        posts = [
            PostView.from_row(
                row,
                author_names=author_names,
                categories=categories,
                user_vote=votes.get(row.id, 0),
            )
            for row in rows
        ]
        if filters.sort is SortMode.HOT:
            posts = sort_page_by_hot(posts, now)

        self.total_count = total
        logger.debug(f"Fetched page {window.page} ({len(posts)} of {total} posts)")
        return PostPage(posts=tuple(posts), total_count=total, window=window)
