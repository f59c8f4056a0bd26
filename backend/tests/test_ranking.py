import math
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from clanhub.modules.forum.ranking import compute_hot_rank, sort_page_by_hot
from clanhub.modules.forum.types import PostView

NOW = datetime(2025, 2, 13, 12, 0, tzinfo=timezone.utc)


def hours_ago(hours: float) -> datetime:
    return NOW - timedelta(hours=hours)


def make_post(post_id: str, score: int, created_at: datetime, pinned: bool = False) -> PostView:
    return PostView(
        id=post_id,
        clan_id="clan-1",
        category_id=None,
        author_id="u1",
        title=post_id,
        content=None,
        is_pinned=pinned,
        is_locked=False,
        score=score,
        comment_count=0,
        created_at=created_at,
        updated_at=created_at,
    )


def test_recent_high_score():
    rank = compute_hot_rank(100, hours_ago(1), NOW, decay_hours=6)
    assert rank == pytest.approx(math.log2(101) - 1 / 6)
    assert rank > 0


def test_zero_score_is_pure_age_penalty():
    assert compute_hot_rank(0, hours_ago(3), NOW, decay_hours=6) == pytest.approx(-0.5)
    assert compute_hot_rank(0, NOW, NOW, decay_hours=6) == 0


def test_negative_score_is_symmetric():
    positive = compute_hot_rank(10, NOW, NOW, decay_hours=6)
    negative = compute_hot_rank(-10, NOW, NOW, decay_hours=6)
    assert negative == pytest.approx(-positive)
    assert negative == pytest.approx(-math.log2(11))


def test_score_of_one_has_minimum_magnitude():
    assert compute_hot_rank(1, NOW, NOW, decay_hours=6) == pytest.approx(1.0)


def test_strictly_decreasing_in_age():
    for score in (-50, 0, 1, 1000):
        ranks = [compute_hot_rank(score, hours_ago(h), NOW, decay_hours=6) for h in (0, 1, 24, 24 * 30)]
        assert ranks == sorted(ranks, reverse=True)
        assert len(set(ranks)) == len(ranks)


def test_old_high_score_post_goes_negative():
    assert compute_hot_rank(1000, hours_ago(24 * 30), NOW, decay_hours=6) < 0


def test_naive_timestamps_are_treated_as_utc():
    naive = hours_ago(2).replace(tzinfo=None)
    assert compute_hot_rank(5, naive, NOW, decay_hours=6) == pytest.approx(
        compute_hot_rank(5, hours_ago(2), NOW, decay_hours=6)
    )


def test_default_decay_comes_from_settings():
    assert compute_hot_rank(0, hours_ago(6), NOW) == pytest.approx(-1.0)


def test_sort_page_keeps_pinned_first():
    old_pinned = make_post("pinned", 0, hours_ago(100), pinned=True)
    fresh = make_post("fresh", 5, hours_ago(1))
    stale = make_post("stale", 50, hours_ago(200))
    ordered = sort_page_by_hot([stale, fresh, old_pinned], NOW)
    assert [post.id for post in ordered] == ["pinned", "fresh", "stale"]


def test_sort_page_orders_by_rank():
    a = make_post("a", 2, hours_ago(1))
    b = make_post("b", 100, hours_ago(2))
    c = replace(a, id="c", score=-5)
    ordered = sort_page_by_hot([a, c, b], NOW)
    assert [post.id for post in ordered] == ["b", "a", "c"]
