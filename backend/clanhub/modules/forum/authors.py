"""
Author name resolution.
"""

from typing import Iterable

from clanhub.modules.forum.store import ForumStore


async def resolve_author_names(store: ForumStore, user_ids: Iterable[str]) -> dict[str, str]:
    """
    Resolve user ids to display names with one batched lookup.

    Empty ids are dropped and duplicates collapsed; when nothing is left
    no query is issued. Names fall back to username, then "Unknown".

    Args:
        store: Forum store
        user_ids: Author ids, in any order, possibly repeated

    Returns:
        Map of user id -> display name
    """
    unique_ids = list(dict.fromkeys(user_id for user_id in user_ids if user_id))
    if not unique_ids:
        return {}

    profiles = await store.get_profiles(unique_ids)
    return {
        profile.id: profile.display_name or profile.username or "Unknown"
        for profile in profiles
    }
