"""Listing Routes: feed, CRUD, verification, images and likes under /api/v1/listings.

Invariants:
    - GET /filter is declared before /{listing_id} so the literal path wins
    - Range checks on feed parameters live in the query planner (FilterValidationError carries
      the offending field); this layer only parses types
    - Feed page size defaults to and is capped by settings (feed_default_limit, feed_max_limit)
    - Unlike is PATCH /{id}/like, the verb existing clients already send
    - Every handler is thin: parse -> service call -> serialize
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from placefeed.api.deps import get_caller, get_image_storage
from placefeed.config import get_settings
from placefeed.core.domain_types import Category, Difficulty, SortMode, Tag
from placefeed.core.query_plan import FeedQuery
from placefeed.core.repository_protocols import ImageStorage
from placefeed.infrastructure.database import get_db
from placefeed.schemas.listing import (
    DescriptionUpdate, ImageRemove, ImagesAdd, ListingCreate, LocationUpdate,
    TagsCategoriesUpdate, TipsUpdate, TitleUpdate, VerifyUpdate,
)
from placefeed.services.like_counter import LikeCounter
from placefeed.services.listing_catalogue import Caller, ListingCatalogue, serialize_listing
from placefeed.services.listing_feed import ListingFeedService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/listings", tags=["listings"])


@router.get("/filter")
async def filter_listings(
    categories: list[Category] = Query([]),
    tags: list[Tag] = Query([]),
    min_rating: float | None = Query(None, alias="minRating"),
    difficulty: Difficulty | None = Query(None),
    verified_only: bool = Query(False, alias="verifiedOnly"),
    lat: float | None = Query(None),
    lng: float | None = Query(None),
    distance_km: float = Query(0.0, alias="distanceKm"),
    sort: str = Query(SortMode.RATING_DESC.value),
    limit: int | None = Query(None),
    cursor: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """One page of the filtered, sorted listing feed."""
    settings = get_settings()
    query = FeedQuery(
        categories=tuple(categories),
        tags=tuple(tags),
        min_rating=min_rating,
        difficulty=difficulty,
        verified_only=verified_only,
        latitude=lat,
        longitude=lng,
        distance_km=distance_km,
        sort=sort,
        limit=settings.feed_default_limit if limit is None else limit,
        cursor=cursor or None,
    )
    page = await ListingFeedService(
        db, max_page_size=settings.feed_max_limit,
    ).fetch_page(query)
    return page.to_response()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_listing(
    body: ListingCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    listing = await ListingCatalogue(db).create(body, caller)
    return {"message": "Listing created successfully", "data": serialize_listing(listing)}


@router.get("/{listing_id}")
async def get_listing(
    listing_id: UUID,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    listing = await ListingCatalogue(db).get(listing_id)
    liked = await LikeCounter(db).liked_by(listing_id, caller.user_id)
    return {"data": serialize_listing(listing, liked_by_user=liked)}


@router.delete("/{listing_id}")
async def delete_listing(
    listing_id: UUID,
    caller: Caller = Depends(get_caller),
    images: ImageStorage = Depends(get_image_storage),
    db: AsyncSession = Depends(get_db),
):
    """Admin only. Image host failures come back as imageRemovalErrors."""
    result = await ListingCatalogue(db, images).delete(listing_id, caller)
    return result.to_response()


@router.patch("/{listing_id}/tips")
async def update_tips(
    listing_id: UUID,
    body: TipsUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    listing = await ListingCatalogue(db).update_tips(listing_id, body, caller)
    return {"data": serialize_listing(listing)}


@router.patch("/{listing_id}/description")
async def update_description(
    listing_id: UUID,
    body: DescriptionUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    listing = await ListingCatalogue(db).update_description(listing_id, body, caller)
    return {"data": serialize_listing(listing)}


@router.patch("/{listing_id}/title")
async def update_title(
    listing_id: UUID,
    body: TitleUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    listing = await ListingCatalogue(db).update_title(listing_id, body, caller)
    return {"data": serialize_listing(listing)}


@router.patch("/{listing_id}/location")
async def update_location(
    listing_id: UUID,
    body: LocationUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    listing = await ListingCatalogue(db).update_location(listing_id, body, caller)
    return {"data": serialize_listing(listing)}


@router.patch("/{listing_id}/tags-categories")
async def update_tags_categories(
    listing_id: UUID,
    body: TagsCategoriesUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    listing = await ListingCatalogue(db).update_taxonomy(listing_id, body, caller)
    return {"data": serialize_listing(listing)}


@router.patch("/{listing_id}/verify")
async def verify_listing(
    listing_id: UUID,
    body: VerifyUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    listing = await ListingCatalogue(db).set_verified(listing_id, body.is_verified, caller)
    return {"data": serialize_listing(listing)}


# ─── Images ──────────────────────────────────────────────────────

@router.post("/{listing_id}/images")
async def add_images(
    listing_id: UUID,
    body: ImagesAdd,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    listing = await ListingCatalogue(db).add_images(listing_id, body, caller)
    return {"message": "Images added successfully", "data": serialize_listing(listing)}


@router.delete("/{listing_id}/images")
async def remove_image(
    listing_id: UUID,
    body: ImageRemove,
    caller: Caller = Depends(get_caller),
    images: ImageStorage = Depends(get_image_storage),
    db: AsyncSession = Depends(get_db),
):
    """Image host failures come back as imageRemovalErrors; the descriptor is gone either way."""
    removal = await ListingCatalogue(db, images).remove_image(
        listing_id, body.external_id, caller,
    )
    return {
        "message": "Image removed successfully",
        "data": serialize_listing(removal.listing),
        "imageRemovalErrors": removal.image_removal_errors,
    }


# ─── Likes ───────────────────────────────────────────────────────

@router.post("/{listing_id}/like")
async def like_listing(
    listing_id: UUID,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    outcome = await LikeCounter(db).like(listing_id, caller.user_id)
    return outcome.to_response()


@router.patch("/{listing_id}/like")
async def unlike_listing(
    listing_id: UUID,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    outcome = await LikeCounter(db).unlike(listing_id, caller.user_id)
    return outcome.to_response()
