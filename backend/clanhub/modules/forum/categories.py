"""
Category Directory - a clan's categories with id and slug lookup.
"""

from typing import Iterable, Iterator

from loguru import logger
from slugify import slugify

from clanhub.modules.forum.store import ForumStore
from clanhub.modules.forum.types import Category


class CategoryDirectory:
    """
    Immutable snapshot of a clan's categories.

    A reload produces a new directory; handlers receive the directory
    they should use as an argument instead of reading shared state.

    Usage:
        directory = await CategoryDirectory.load(store, clan_id)
        name = directory.get(post.category_id).name
    """

    def __init__(self, categories: Iterable[Category] = ()) -> None:
        self._categories = tuple(categories)
        self._by_id = {category.id: category for category in self._categories}
        self._by_slug = {category.slug: category for category in self._categories}

    @classmethod
    async def load(cls, store: ForumStore, clan_id: str) -> "CategoryDirectory":
        """Fetch a clan's categories from the store."""
        rows = await store.list_categories(clan_id)
        logger.debug(f"Loaded {len(rows)} forum categories for clan {clan_id}")
        return cls(Category.from_row(row) for row in rows)

    def __len__(self) -> int:
        return len(self._categories)

    def __iter__(self) -> Iterator[Category]:
        return iter(self._categories)

    def __bool__(self) -> bool:
        return bool(self._categories)

    def get(self, category_id: str | None) -> Category | None:
        """Look up a category by id."""
        if not category_id:
            return None
        return self._by_id.get(category_id)

    def find_by_slug(self, slug: str) -> Category | None:
        """
        Look up a category by slug.

        The slug is normalized first so "Events " and "events" match.
        """
        if not slug:
            return None
        return self._by_slug.get(slug) or self._by_slug.get(slugify(slug))

    def name_of(self, category_id: str | None) -> str:
        category = self.get(category_id)
        return category.name if category else ""

    def slug_of(self, category_id: str | None) -> str:
        category = self.get(category_id)
        return category.slug if category else ""
