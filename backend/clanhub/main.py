"""
ClanHub Forum runtime.

Brings up logging and the database for the forum engine and tears
them down again.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from loguru import logger

from clanhub.core.config import settings
from clanhub.core.database import close_db, init_db
from clanhub.core.logging import setup_logging
from clanhub.modules.forum.store import ForumStore


@asynccontextmanager
async def forum_runtime(create_tables: bool = False) -> AsyncGenerator[ForumStore, None]:
    """
    Runtime lifespan manager.

    Args:
        create_tables: Create missing forum tables before yielding

    Usage:
        async with forum_runtime() as store:
            forum = ForumController(store, clan_id, identity=session)
            await forum.start()
    """
    setup_logging()
    logger.info(f"Starting {settings.app_name} v{settings.app_version}...")

    if create_tables:
        await init_db()

    try:
        yield ForumStore()
    finally:
        logger.info(f"Shutting down {settings.app_name}...")
        await close_db()
