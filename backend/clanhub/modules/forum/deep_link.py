"""
Deep-Link Resolver - loads one post by id outside of pagination.
"""

from dataclasses import dataclass

from loguru import logger

from clanhub.modules.forum.authors import resolve_author_names
from clanhub.modules.forum.categories import CategoryDirectory
from clanhub.modules.forum.comments import load_comment_tree
from clanhub.modules.forum.store import ForumStore
from clanhub.modules.forum.types import CommentView, PostView, VoteTarget


@dataclass(frozen=True)
class LinkedPost:
    """A deep-linked post with its comment tree."""

    post: PostView
    comments: tuple[CommentView, ...]


class DeepLinkResolver:
    """
    Resolves a permalinked post id.

    Usage:
        resolver = DeepLinkResolver(store)
        linked = await resolver.resolve(post_id, categories, user_id)
    """

    def __init__(self, store: ForumStore) -> None:
        self.store = store

    async def resolve(
        self,
        post_id: str,
        categories: CategoryDirectory,
        current_user_id: str,
    ) -> LinkedPost | None:
        """
        Fetch one post, its author name, the user's vote and its comments.

        Returns:
            The linked post, or None if no such post exists
        """
        row = await self.store.get_post(post_id)
        if row is None:
            logger.info(f"Deep-linked post {post_id} not found")
            return None

        author_names = await resolve_author_names(self.store, [row.author_id])

        user_vote = 0
        if current_user_id:
            votes = await self.store.get_user_votes(VoteTarget.POST, current_user_id, [row.id])
            user_vote = votes.get(row.id, 0)

        post = PostView.from_row(
            row,
            author_names=author_names,
            categories=categories,
            user_vote=user_vote,
        )
        comments = await load_comment_tree(self.store, post.id, current_user_id)
        return LinkedPost(post=post, comments=comments)
