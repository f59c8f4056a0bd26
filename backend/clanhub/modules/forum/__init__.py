"""
Forum Module - Clan discussions.

Features:
- Categories with slug lookup
- Paginated posts with new / top / hot ordering
- Threaded comments
- Up/down votes with aggregate scores
- Deep links to single posts
- Moderation tools (pin, lock, delete)
"""

from clanhub.modules.forum.controller import ForumController
from clanhub.modules.forum.ranking import compute_hot_rank
from clanhub.modules.forum.store import ForumStore
from clanhub.modules.forum.thread_sync import create_linked_forum_post

__all__ = [
    "ForumController",
    "ForumStore",
    "compute_hot_rank",
    "create_linked_forum_post",
]
