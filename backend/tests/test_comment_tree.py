from datetime import datetime, timezone

from clanhub.modules.forum.comment_tree import (
    build_comment_tree,
    find_comment,
    iter_comments,
    replace_comment,
)
from clanhub.modules.forum.types import CommentView

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def comment(comment_id: str, parent: str | None = None) -> CommentView:
    return CommentView(
        id=comment_id,
        post_id="p1",
        parent_comment_id=parent,
        author_id="u1",
        content=f"comment {comment_id}",
        score=0,
        created_at=T0,
        updated_at=T0,
    )


def ids(nodes) -> list[str]:
    return [node.id for node in nodes]


def test_chain_nests_under_direct_parent():
    tree = build_comment_tree([comment("1"), comment("2", "1"), comment("3", "2")])

    assert ids(tree) == ["1"]
    first = tree[0]
    assert ids(first.replies) == ["2"]
    assert ids(first.replies[0].replies) == ["3"]
    assert first.replies[0].replies[0].replies == ()


def test_siblings_keep_input_order():
    tree = build_comment_tree(
        [comment("1"), comment("2"), comment("3", "1"), comment("4", "1"), comment("5", "2")]
    )
    assert ids(tree) == ["1", "2"]
    assert ids(tree[0].replies) == ["3", "4"]
    assert ids(tree[1].replies) == ["5"]


def test_missing_parent_becomes_root():
    tree = build_comment_tree([comment("1"), comment("2", "deleted")])
    assert ids(tree) == ["1", "2"]


def test_reply_listed_before_parent_becomes_root():
    tree = build_comment_tree([comment("b", "a"), comment("a", "b")])
    assert ids(tree) == ["b"]
    assert ids(tree[0].replies) == ["a"]
    assert tree[0].replies[0].replies == ()


def test_self_reference_is_root():
    tree = build_comment_tree([comment("1", "1")])
    assert ids(tree) == ["1"]
    assert tree[0].replies == ()


def test_empty_input():
    assert build_comment_tree([]) == ()


def test_input_is_not_modified():
    flat = [comment("1"), comment("2", "1")]
    build_comment_tree(flat)
    assert all(node.replies == () for node in flat)


def test_iter_find_and_replace():
    tree = build_comment_tree([comment("1"), comment("2", "1"), comment("3", "2"), comment("4")])

    assert ids(iter_comments(tree)) == ["1", "2", "3", "4"]
    assert find_comment(tree, "3").content == "comment 3"
    assert find_comment(tree, "nope") is None

    updated = replace_comment(tree, "3", score=7, user_vote=1)
    assert find_comment(updated, "3").score == 7
    assert find_comment(updated, "3").user_vote == 1
    assert find_comment(tree, "3").score == 0
    assert ids(iter_comments(updated)) == ["1", "2", "3", "4"]
