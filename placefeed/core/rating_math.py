"""Rating Aggregate: incremental-mean arithmetic for a listing's averageRating/ratingsCount.

Invariants:
    - average == 0.0 iff count == 0
    - count never goes below 0
    - average stays within [0, 5] (float drift is clamped)
    - Every function is PURE and returns a new RatingAggregate

Design Decisions:
    - Incremental updates on the hot path; recompute() exists for verification and repair only
"""

from dataclasses import dataclass
from typing import Iterable

from placefeed.core.domain_types import MAX_RATING, AverageRating, Rating


@dataclass(frozen=True)
class RatingAggregate:
    average: AverageRating = AverageRating(0.0)
    count: int = 0


def _clamp(value: float) -> float:
    return min(max(value, 0.0), float(MAX_RATING))


def add_rating(agg: RatingAggregate, rating: Rating) -> RatingAggregate:
    """(avg * n + r) / (n + 1)."""
    count = max(agg.count, 0)
    new_count = count + 1
    return RatingAggregate(
        average=_clamp((agg.average * count + rating) / new_count),
        count=new_count,
    )


def replace_rating(agg: RatingAggregate, old: Rating, new: Rating) -> RatingAggregate:
    """(avg * n - old + new) / n, count unchanged."""
    if old == new:
        return agg
    count = agg.count if agg.count > 0 else 1
    return RatingAggregate(
        average=_clamp((agg.average * count - old + new) / count),
        count=agg.count,
    )


def remove_rating(agg: RatingAggregate, rating: Rating) -> RatingAggregate:
    """(avg * n - r) / (n - 1); the last rating out resets to (0, 0)."""
    new_count = max(agg.count - 1, 0)
    if new_count == 0:
        return RatingAggregate(average=0.0, count=0)
    return RatingAggregate(
        average=_clamp((agg.average * agg.count - rating) / new_count),
        count=new_count,
    )


def recompute(ratings: Iterable[Rating]) -> RatingAggregate:
    values = list(ratings)
    if not values:
        return RatingAggregate()
    return RatingAggregate(average=sum(values) / len(values), count=len(values))
