"""
Comment tree construction and lookup.

Pure functions over immutable CommentView tuples. Nesting depth is not
limited here; how many levels to show is up to the presentation.
"""

from dataclasses import replace
from typing import Any, Iterator, Sequence

from clanhub.modules.forum.types import CommentView


def build_comment_tree(comments: Sequence[CommentView]) -> tuple[CommentView, ...]:
    """
    Turn a flat, oldest-first comment list into a forest.

    A comment is attached under its parent only if the parent appears
    earlier in the list; otherwise it becomes a root. This keeps the
    result acyclic whatever the input. Runs in O(n).

    Args:
        comments: Comments of one post ordered by creation time ascending

    Returns:
        Root comments in input order, each with its `replies` filled in
    """
    position: dict[str, int] = {}
    children: list[list[int]] = [[] for _ in comments]
    roots: list[int] = []

    for index, comment in enumerate(comments):
        parent = position.get(comment.parent_comment_id) if comment.parent_comment_id else None
        if parent is None:
            roots.append(index)
        else:
            children[parent].append(index)
        position.setdefault(comment.id, index)

    # Children always sit after their parent, so a reverse pass sees them built first
    built: list[CommentView | None] = [None] * len(comments)
    for index in range(len(comments) - 1, -1, -1):
        built[index] = replace(
            comments[index],
            replies=tuple(built[child] for child in children[index]),
        )

    return tuple(built[index] for index in roots)


def iter_comments(tree: Sequence[CommentView]) -> Iterator[CommentView]:
    """Walk every comment depth-first, parents before replies."""
    stack = list(reversed(tree))
    while stack:
        comment = stack.pop()
        yield comment
        stack.extend(reversed(comment.replies))


def find_comment(tree: Sequence[CommentView], comment_id: str) -> CommentView | None:
    """Find a comment anywhere in the tree."""
    for comment in iter_comments(tree):
        if comment.id == comment_id:
            return comment
    return None


def replace_comment(
    tree: Sequence[CommentView],
    comment_id: str,
    **changes: Any,
) -> tuple[CommentView, ...]:
    """Return a copy of the tree with one comment's fields changed."""

    def rebuild(nodes: Sequence[CommentView]) -> tuple[CommentView, ...]:
        updated = []
        for node in nodes:
            if node.id == comment_id:
                node = replace(node, **changes)
            elif node.replies:
                node = replace(node, replies=rebuild(node.replies))
            updated.append(node)
        return tuple(updated)

    return rebuild(tree)
