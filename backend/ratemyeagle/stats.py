"""Aggregate statistics over a professor's ratings."""

import math
from collections import Counter
from collections.abc import Iterable, Mapping
from typing import Any

from ratemyeagle.schemas import RatingStats, TagCount

TOP_TAG_LIMIT = 5


def _field(record: Any, name: str):
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def round_one_decimal(value: float) -> float:
    """Round half-up to one decimal place (2.25 -> 2.3, not banker's 2.2)."""
    return math.floor(value * 10 + 0.5) / 10


def compute_rating_stats(ratings: Iterable[Any]) -> RatingStats:
    """Mean rating, mean difficulty and the most frequent tags.

    ``ratings`` may hold mappings or ORM rows; each needs ``rating`` and
    ``difficulty``, and may carry a ``tags`` list. Tags with equal counts
    keep the order in which they were first seen.
    """
    records = list(ratings)
    total = len(records)
    if total == 0:
        return RatingStats()

    rating_sum = 0
    difficulty_sum = 0
    tag_counts: Counter[str] = Counter()
    for record in records:
        rating_sum += _field(record, "rating")
        difficulty_sum += _field(record, "difficulty")
        tags = _field(record, "tags")
        if isinstance(tags, (list, tuple)):
            tag_counts.update(tags)

    return RatingStats(
        total_ratings=total,
        avg_rating=round_one_decimal(rating_sum / total),
        avg_difficulty=round_one_decimal(difficulty_sum / total),
        top_tags=[TagCount(tag=tag, count=count) for tag, count in tag_counts.most_common(TOP_TAG_LIMIT)],
    )
