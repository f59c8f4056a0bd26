"""
Hot-rank scoring.

The rank is only ever applied to one already fetched page of posts,
which the store returns ordered by recency. It is not a global order
across pages.
"""

import math
from datetime import datetime, timezone
from typing import Iterable

from clanhub.core.config import settings
from clanhub.modules.forum.types import PostView

MS_PER_HOUR = 3_600_000


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_hot_rank(
    score: int,
    created_at: datetime,
    now: datetime | None = None,
    decay_hours: float | None = None,
) -> float:
    """
    Recency-weighted rank of a post.

    sign(score) * log2(max(|score|, 1) + 1) - age_hours / decay_hours

    Args:
        score: Aggregate vote score
        created_at: Post creation time
        now: Reference time (default: current UTC time)
        decay_hours: Hours of age that cost one rank point (default from settings)
    """
    now = _as_utc(now) if now else datetime.now(timezone.utc)
    decay = decay_hours or settings.forum_hot_decay_hours

    age_ms = (now - _as_utc(created_at)).total_seconds() * 1000
    age_hours = age_ms / MS_PER_HOUR

    sign = (score > 0) - (score < 0)
    magnitude = math.log2(max(abs(score), 1) + 1)
    return sign * magnitude - age_hours / decay


def sort_page_by_hot(posts: Iterable[PostView], now: datetime | None = None) -> list[PostView]:
    """Order one page: pinned posts first, then by hot rank descending."""
    now = now or datetime.now(timezone.utc)
    return sorted(
        posts,
        key=lambda post: (not post.is_pinned, -compute_hot_rank(post.score, post.created_at, now)),
    )
