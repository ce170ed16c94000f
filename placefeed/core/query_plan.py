"""Query Planner: builds the ordered stage list for one listing feed page.

Invariants:
    - plan_listing_feed is PURE: no IO, same FeedQuery -> same FeedPlan
    - Stage order is fixed: [match | geo-nearest] -> cursor -> project -> sort -> limit
    - GeoNearStage present iff (point given and distance_km > 0) or sort mode is DISTANCE;
      when present it carries the match stage as its pre-filter and no separate MatchStage is emitted
    - Every sort ends with _id descending, so no two rows tie
    - CursorStage admits only rows strictly after the cursor in the active order
    - LimitStage fetches page size + 1 (the extra row only signals a next page)

Design Decisions:
    - Stages are frozen dataclasses over logical field names (createdAt, _id, averageRating,
      likesCount, distanceMeters); infrastructure/feed_query.py compiles them to SQL
    - Cursor branches derived from the sort keys, so the tie-break cascade and the ORDER BY
      cannot drift apart
"""

from dataclasses import dataclass, field
from typing import Any, Union

from placefeed.core.cursor_codec import FeedCursor
from placefeed.core.domain_types import Category, Difficulty, SortMode, Tag
from placefeed.core.errors import FilterValidationError

MIN_PAGE_SIZE: int = 1
MAX_PAGE_SIZE: int = 100
MAX_DISTANCE_KM: float = 250.0
DEFAULT_GEO_BOUND_KM: float = 10_000.0
DESCRIPTION_PREVIEW_CHARS: int = 240
IMAGE_PREVIEW_COUNT: int = 1

PROJECTED_FIELDS: tuple[str, ...] = (
    "_id", "name", "description", "categories", "tags", "images",
    "averageRating", "ratingsCount", "likesCount", "createdAt",
    "physicalAddress", "location",
)


# ─── Input ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class FeedQuery:
    """Validated filter/sort request for one feed page."""
    categories: tuple[Category, ...] = ()
    tags: tuple[Tag, ...] = ()
    min_rating: float | None = None
    difficulty: Difficulty | None = None
    verified_only: bool = False
    latitude: float | None = None
    longitude: float | None = None
    distance_km: float = 0.0
    sort: SortMode | str = SortMode.RATING_DESC
    limit: int = 20
    cursor: str | None = None

    @property
    def has_point(self) -> bool:
        return self.latitude is not None and self.longitude is not None


# ─── Stages ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class MatchStage:
    """Conjunction of attribute predicates."""
    verified_only: bool = False
    categories: tuple[Category, ...] = ()
    tags: tuple[Tag, ...] = ()
    min_rating: float | None = None
    difficulty: Difficulty | None = None

    @property
    def is_empty(self) -> bool:
        return not (
            self.verified_only or self.categories or self.tags
            or self.min_rating is not None or self.difficulty is not None
        )


@dataclass(frozen=True)
class GeoNearStage:
    """Nearest-first from an origin, bounded, annotating distanceMeters."""
    longitude: float
    latitude: float
    max_distance_meters: float
    query: MatchStage = field(default_factory=MatchStage)
    distance_field: str = "distanceMeters"


@dataclass(frozen=True)
class Comparison:
    """One predicate on a logical sort key. op is 'lt', 'gt' or 'eq'."""
    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class CursorStage:
    """Disjunction of conjunctions: any branch admits the row."""
    cursor: FeedCursor
    branches: tuple[tuple[Comparison, ...], ...]


@dataclass(frozen=True)
class ProjectStage:
    fields: tuple[str, ...]
    description_max_chars: int = DESCRIPTION_PREVIEW_CHARS
    image_limit: int = IMAGE_PREVIEW_COUNT
    include_distance: bool = False


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool


@dataclass(frozen=True)
class SortStage:
    keys: tuple[SortKey, ...]


@dataclass(frozen=True)
class LimitStage:
    count: int


Stage = Union[MatchStage, GeoNearStage, CursorStage, ProjectStage, SortStage, LimitStage]


@dataclass(frozen=True)
class FeedPlan:
    """Ordered stages plus the page parameters the pagination engine needs."""
    stages: tuple[Stage, ...]
    sort_mode: SortMode
    page_size: int

    def stage(self, stage_type: type) -> Stage | None:
        for s in self.stages:
            if isinstance(s, stage_type):
                return s
        return None

    @property
    def uses_geo(self) -> bool:
        return self.stage(GeoNearStage) is not None


# ─── Ordering ────────────────────────────────────────────────────

_CREATED_DESC = SortKey("createdAt", True)
_ID_DESC = SortKey("_id", True)

SORT_KEYS: dict[SortMode, tuple[SortKey, ...]] = {
    SortMode.NEWEST: (_CREATED_DESC, _ID_DESC),
    SortMode.RATING_DESC: (SortKey("averageRating", True), _CREATED_DESC, _ID_DESC),
    SortMode.RATING_ASC: (SortKey("averageRating", False), _CREATED_DESC, _ID_DESC),
    SortMode.LIKES_DESC: (SortKey("likesCount", True), _CREATED_DESC, _ID_DESC),
    SortMode.LIKES_ASC: (SortKey("likesCount", False), _CREATED_DESC, _ID_DESC),
    SortMode.DISTANCE: (
        SortKey("distanceMeters", False),
        SortKey("averageRating", True),
        _CREATED_DESC,
        _ID_DESC,
    ),
}


def build_cursor_stage(cursor: FeedCursor) -> CursorStage:
    """Branch i: keys[:i] equal to the cursor, keys[i] strictly past it."""
    keys = SORT_KEYS[cursor.sort_mode]
    branches = []
    for i, key in enumerate(keys):
        equal_prefix = tuple(
            Comparison(k.field, "eq", cursor.value_of(k.field)) for k in keys[:i]
        )
        past = Comparison(
            key.field, "lt" if key.descending else "gt", cursor.value_of(key.field),
        )
        branches.append(equal_prefix + (past,))
    return CursorStage(cursor=cursor, branches=tuple(branches))


# ─── Validation ──────────────────────────────────────────────────

def validate_feed_query(
    query: FeedQuery, sort_mode: SortMode, max_page_size: int = MAX_PAGE_SIZE,
) -> None:
    """Reject malformed combinations before any store access."""
    if not MIN_PAGE_SIZE <= query.limit <= max_page_size:
        raise FilterValidationError(
            f"limit must be between {MIN_PAGE_SIZE} and {max_page_size}", "limit",
        )
    if query.min_rating is not None and not 0 <= query.min_rating <= 5:
        raise FilterValidationError("minRating must be between 0 and 5", "minRating")
    if not 0 <= query.distance_km <= MAX_DISTANCE_KM:
        raise FilterValidationError(
            f"distanceKm must be between 0 and {MAX_DISTANCE_KM:g}", "distanceKm",
        )
    if query.latitude is not None and not -90 <= query.latitude <= 90:
        raise FilterValidationError("lat must be between -90 and 90", "lat")
    if query.longitude is not None and not -180 <= query.longitude <= 180:
        raise FilterValidationError("lng must be between -180 and 180", "lng")
    if sort_mode is SortMode.DISTANCE and not query.has_point:
        raise FilterValidationError("lat and lng are required for distance sort", "sort")


# ─── Planner ─────────────────────────────────────────────────────

def plan_listing_feed(query: FeedQuery, max_page_size: int = MAX_PAGE_SIZE) -> FeedPlan:
    """FeedQuery -> FeedPlan. Raises FilterValidationError or CursorError.

    max_page_size comes from settings at the HTTP boundary (feed_max_limit).
    """
    sort_mode = SortMode.parse(query.sort)
    validate_feed_query(query, sort_mode, max_page_size)

    cursor = FeedCursor.from_token(query.cursor, sort_mode) if query.cursor else None

    match = MatchStage(
        verified_only=query.verified_only,
        categories=tuple(query.categories),
        tags=tuple(query.tags),
        min_rating=query.min_rating,
        difficulty=query.difficulty,
    )
    run_geo = (query.has_point and query.distance_km > 0) or sort_mode is SortMode.DISTANCE

    stages: list[Stage] = []
    if run_geo:
        bound_km = query.distance_km if query.distance_km > 0 else DEFAULT_GEO_BOUND_KM
        stages.append(GeoNearStage(
            longitude=float(query.longitude),
            latitude=float(query.latitude),
            max_distance_meters=bound_km * 1000,
            query=match,
        ))
    elif not match.is_empty:
        stages.append(match)

    if cursor is not None:
        stages.append(build_cursor_stage(cursor))

    stages.append(ProjectStage(
        fields=PROJECTED_FIELDS + (("distanceMeters",) if run_geo else ()),
        include_distance=run_geo,
    ))
    stages.append(SortStage(keys=SORT_KEYS[sort_mode]))
    stages.append(LimitStage(count=query.limit + 1))

    return FeedPlan(stages=tuple(stages), sort_mode=sort_mode, page_size=query.limit)
