"""Feed Query Compiler: turns a FeedPlan into one SQLAlchemy SELECT and shapes its rows.

Invariants:
    - Match and geo-nearest stages compile into a derived table "feed_rows"; cursor, projection,
      sort and limit operate on that derived table (distance_meters is addressable there)
    - Distance is great-circle (haversine) in meters on a spherical Earth
    - Output rows use the wire field names; description is cut to ProjectStage.description_max_chars
      code points and images to ProjectStage.image_limit entries
    - Category/tag hydration is one bounded query per page, never per row

Design Decisions:
    - Haversine in plain SQL math (radians/sin/cos/asin/sqrt): runs on stock PostgreSQL and on
      SQLite with functions registered by infrastructure/database.py, no PostGIS dependency
    - The asin argument is clamped to 1.0 so float drift near antipodes cannot raise
"""

import math
from collections import defaultdict
from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy import Float, Select, and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from placefeed.core.query_plan import (
    Comparison, CursorStage, FeedPlan, GeoNearStage, LimitStage, MatchStage,
    ProjectStage, SortStage,
)
from placefeed.models.listing import Listing, ListingCategory, ListingTag

EARTH_RADIUS_METERS: float = 6_371_008.8

# Logical field -> column name in the derived table
FIELD_COLUMNS: dict[str, str] = {
    "_id": "id",
    "createdAt": "created_at",
    "averageRating": "average_rating",
    "likesCount": "likes_count",
    "distanceMeters": "distance_meters",
}

_BASE_COLUMNS = (
    Listing.id,
    Listing.name,
    Listing.description,
    Listing.images,
    Listing.average_rating,
    Listing.ratings_count,
    Listing.likes_count,
    Listing.created_at,
    Listing.physical_address,
    Listing.longitude,
    Listing.latitude,
)


def haversine_distance(longitude: float, latitude: float) -> ColumnElement[float]:
    """Distance in meters from (longitude, latitude) to each listing's point."""
    cos_origin = math.cos(math.radians(latitude))
    half_dlat = func.radians(Listing.latitude - latitude, type_=Float) / 2
    half_dlon = func.radians(Listing.longitude - longitude, type_=Float) / 2
    sin_dlat = func.sin(half_dlat, type_=Float)
    sin_dlon = func.sin(half_dlon, type_=Float)
    lat_cos = func.cos(func.radians(Listing.latitude, type_=Float), type_=Float)
    a = sin_dlat * sin_dlat + cos_origin * lat_cos * sin_dlon * sin_dlon
    clamped = case((a > 1.0, 1.0), else_=a)
    return 2 * EARTH_RADIUS_METERS * func.asin(func.sqrt(clamped, type_=Float), type_=Float)


def match_conditions(match: MatchStage) -> list[ColumnElement[bool]]:
    """MatchStage -> WHERE conjuncts on the listings table."""
    conditions: list[ColumnElement[bool]] = []
    if match.verified_only:
        conditions.append(Listing.is_verified.is_(True))
    if match.categories:
        conditions.append(Listing.id.in_(
            select(ListingCategory.listing_id).where(
                ListingCategory.category.in_([c.value for c in match.categories]),
            ),
        ))
    if match.tags:
        conditions.append(Listing.id.in_(
            select(ListingTag.listing_id).where(
                ListingTag.tag.in_([t.value for t in match.tags]),
            ),
        ))
    if match.min_rating is not None:
        conditions.append(Listing.average_rating >= match.min_rating)
    if match.difficulty is not None:
        conditions.append(Listing.difficulty == match.difficulty.value)
    return conditions


def _comparison(column: ColumnElement, cmp: Comparison) -> ColumnElement[bool]:
    if cmp.op == "lt":
        return column < cmp.value
    if cmp.op == "gt":
        return column > cmp.value
    if cmp.op == "eq":
        return column == cmp.value
    raise ValueError(f"Unknown comparison operator '{cmp.op}'")


def compile_feed_plan(plan: FeedPlan) -> Select:
    """FeedPlan -> SELECT over the derived feed_rows table."""
    base = select(*_BASE_COLUMNS)
    for stage in plan.stages:
        if isinstance(stage, MatchStage):
            base = base.where(*match_conditions(stage))
        elif isinstance(stage, GeoNearStage):
            distance = haversine_distance(stage.longitude, stage.latitude)
            base = (
                base.add_columns(distance.label("distance_meters"))
                .where(*match_conditions(stage.query))
                .where(distance <= stage.max_distance_meters)
            )
    rows = base.subquery("feed_rows")

    project = plan.stage(ProjectStage)
    columns = [
        rows.c.id, rows.c.name,
        func.substr(rows.c.description, 1, project.description_max_chars).label("description"),
        rows.c.images, rows.c.average_rating, rows.c.ratings_count, rows.c.likes_count,
        rows.c.created_at, rows.c.physical_address, rows.c.longitude, rows.c.latitude,
    ]
    if project.include_distance:
        columns.append(rows.c.distance_meters)
    stmt = select(*columns)

    for stage in plan.stages:
        if isinstance(stage, CursorStage):
            stmt = stmt.where(or_(*[
                and_(*[
                    _comparison(rows.c[FIELD_COLUMNS[cmp.field]], cmp) for cmp in branch
                ])
                for branch in stage.branches
            ]))
        elif isinstance(stage, SortStage):
            stmt = stmt.order_by(*[
                rows.c[FIELD_COLUMNS[key.field]].desc() if key.descending
                else rows.c[FIELD_COLUMNS[key.field]].asc()
                for key in stage.keys
            ])
        elif isinstance(stage, LimitStage):
            stmt = stmt.limit(stage.count)
    return stmt


def shape_feed_row(row: Mapping[str, Any], project: ProjectStage) -> dict[str, Any]:
    """Result row -> wire item (categories/tags filled in by hydrate_taxonomy)."""
    item = {
        "id": row["id"],
        "name": row["name"],
        "description": row["description"],
        "categories": [],
        "tags": [],
        "images": list(row["images"] or [])[: project.image_limit],
        "averageRating": row["average_rating"] or 0.0,
        "ratingsCount": row["ratings_count"] or 0,
        "likesCount": row["likes_count"] or 0,
        "createdAt": row["created_at"],
        "physicalAddress": row["physical_address"],
        "location": {
            "type": "Point",
            "coordinates": [row["longitude"], row["latitude"]],
        },
    }
    if project.include_distance:
        item["distanceMeters"] = row["distance_meters"]
    return item


async def hydrate_taxonomy(db: AsyncSession, items: Iterable[dict[str, Any]]) -> None:
    """Fill categories and tags for a page of items in two queries."""
    by_id: dict[UUID, dict[str, Any]] = {item["id"]: item for item in items}
    if not by_id:
        return
    categories: dict[UUID, list[str]] = defaultdict(list)
    tags: dict[UUID, list[str]] = defaultdict(list)

    result = await db.execute(
        select(ListingCategory.listing_id, ListingCategory.category)
        .where(ListingCategory.listing_id.in_(by_id.keys()))
        .order_by(ListingCategory.category),
    )
    for listing_id, category in result.all():
        categories[listing_id].append(category)

    result = await db.execute(
        select(ListingTag.listing_id, ListingTag.tag)
        .where(ListingTag.listing_id.in_(by_id.keys()))
        .order_by(ListingTag.tag),
    )
    for listing_id, tag in result.all():
        tags[listing_id].append(tag)

    for listing_id, item in by_id.items():
        item["categories"] = categories[listing_id]
        item["tags"] = tags[listing_id]
