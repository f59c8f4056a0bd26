"""
Startup readiness probe for the forum tables.
"""

from loguru import logger

from clanhub.modules.forum.errors import ForumStoreError
from clanhub.modules.forum.store import FORUM_TABLES, ForumStore
from clanhub.modules.forum.types import StoreReadiness


async def probe_readiness(store: ForumStore) -> StoreReadiness:
    """
    Check once whether the forum schema is provisioned.

    Returns:
        READY when every forum table exists, NOT_PROVISIONED when any is
        missing, UNAVAILABLE when the database could not be reached.
    """
    try:
        present = await store.list_table_names()
    except ForumStoreError as e:
        logger.warning(f"Forum readiness probe could not reach the database: {e}")
        return StoreReadiness.UNAVAILABLE

    missing = sorted(FORUM_TABLES - present)
    if missing:
        logger.warning(f"Forum tables not provisioned: {', '.join(missing)}")
        return StoreReadiness.NOT_PROVISIONED

    logger.info("Forum tables ready")
    return StoreReadiness.READY
