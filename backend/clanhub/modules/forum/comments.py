"""
Loading a post's comments as an enriched tree.
"""

from clanhub.modules.forum.authors import resolve_author_names
from clanhub.modules.forum.comment_tree import build_comment_tree
from clanhub.modules.forum.store import ForumStore
from clanhub.modules.forum.types import CommentView, VoteTarget


async def load_comment_tree(
    store: ForumStore,
    post_id: str,
    current_user_id: str,
) -> tuple[CommentView, ...]:
    """
    Fetch, enrich and nest the comments of one post.

    Args:
        store: Forum store
        post_id: Post whose comments are loaded
        current_user_id: User whose votes fill `user_vote` ("" for none)

    Returns:
        Root comments with nested replies
    """
    rows = await store.list_comments(post_id)
    if not rows:
        return ()

    author_names = await resolve_author_names(store, (row.author_id for row in rows))

    votes: dict[str, int] = {}
    if current_user_id:
        votes = await store.get_user_votes(
            VoteTarget.COMMENT, current_user_id, [row.id for row in rows]
        )

    flat = [
        CommentView.from_row(row, author_names=author_names, user_vote=votes.get(row.id, 0))
        for row in rows
    ]
    return build_comment_tree(flat)
