"""Listing Catalogue: create, read, edit, verify and delete listings, and manage their images.

Invariants:
    - A listing always has at least one category (schemas enforce min_length=1)
    - Aggregates (average_rating, ratings_count, likes_count) start at zero and are NEVER
      written here; they belong to the rating ledger and the like counter
    - Delete removes the listing row (reviews, likes, categories, tags cascade) and then
      removes its images best-effort: an image failure becomes a diagnostic, never a failed delete
    - Image removal only ever targets an externalId the listing actually holds
    - Owner-or-admin edits and admin-only actions raise PermissionDeniedError

Design Decisions:
    - Image host calls run after the row change commits: a listing pointing at missing images
      is worse than orphaned images on the host
    - serialize_listing builds the full wire shape (camelCase) in one place
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from placefeed.core.domain_types import ListingId, UserId
from placefeed.core.errors import (
    ErrorContext, ExternalStorageError, PermissionDeniedError, ResourceNotFoundError,
)
from placefeed.core.repository_protocols import ImageStorage
from placefeed.infrastructure.database import transaction_scope
from placefeed.models.listing import Listing, ListingCategory, ListingTag
from placefeed.schemas.listing import (
    DescriptionUpdate, ImagesAdd, ListingCreate, LocationUpdate, TagsCategoriesUpdate,
    TipsUpdate, TitleUpdate,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Identity forwarded by the auth gateway. user_id is None for anonymous callers."""
    user_id: UserId | None = None
    is_admin: bool = False


@dataclass
class DeleteResult:
    listing_id: ListingId
    image_removal_errors: list[dict[str, str]] = field(default_factory=list)

    def to_response(self) -> dict:
        return {
            "id": str(self.listing_id),
            "deleted": True,
            "imageRemovalErrors": self.image_removal_errors,
        }


@dataclass
class ImageRemoval:
    listing: Listing
    image_removal_errors: list[dict[str, str]] = field(default_factory=list)


def serialize_listing(listing: Listing, liked_by_user: bool | None = None) -> dict[str, Any]:
    data = {
        "id": str(listing.id),
        "author": listing.author_id,
        "name": listing.name,
        "description": listing.description,
        "categories": sorted(listing.categories),
        "tags": sorted(listing.tags),
        "location": {
            "type": "Point",
            "coordinates": [listing.longitude, listing.latitude],
        },
        "physicalAddress": listing.physical_address,
        "images": list(listing.images or []),
        "permitsRequired": listing.permits_required,
        "permitsDescription": listing.permits_description,
        "bestSeason": listing.best_season,
        "difficulty": listing.difficulty,
        "extraAdvice": listing.extra_advice,
        "isVerified": listing.is_verified,
        "averageRating": listing.average_rating,
        "ratingsCount": listing.ratings_count,
        "likesCount": listing.likes_count,
        "createdAt": listing.created_at.isoformat(),
        "updatedAt": listing.updated_at.isoformat(),
    }
    if liked_by_user is not None:
        data["likedByUser"] = liked_by_user
    return data


def require_admin(caller: Caller, action: str) -> None:
    if not caller.is_admin:
        raise PermissionDeniedError(action)


def require_owner_or_admin(caller: Caller, owner_id: str | None, action: str) -> None:
    if caller.is_admin:
        return
    if caller.user_id is None or caller.user_id != owner_id:
        raise PermissionDeniedError(action)


class ListingCatalogue:
    """Listing CRUD outside the feed, rating and like paths."""

    def __init__(self, db: AsyncSession, images: ImageStorage | None = None):
        self.db = db
        self.images = images

    async def create(self, body: ListingCreate, caller: Caller) -> Listing:
        if caller.user_id is None:
            raise PermissionDeniedError("create a listing")

        async with transaction_scope(self.db):
            listing = Listing(
                author_id=caller.user_id,
                name=body.name,
                description=body.description,
                latitude=body.latitude,
                longitude=body.longitude,
                physical_address=body.physical_address,
                images=[img.model_dump(by_alias=True) for img in body.images],
                permits_required=body.permits_required,
                permits_description=body.permits_description,
                best_season=body.best_season,
                difficulty=body.difficulty.value,
                extra_advice=body.extra_advice,
                category_rows=[
                    ListingCategory(category=c.value) for c in dict.fromkeys(body.categories)
                ],
                tag_rows=[ListingTag(tag=t.value) for t in dict.fromkeys(body.tags)],
            )
            self.db.add(listing)
            await self.db.flush()

        logger.info(f"Listing created: {listing.name}", extra={"listing_id": listing.id})
        return listing

    async def get(self, listing_id: ListingId) -> Listing:
        result = await self.db.execute(select(Listing).where(Listing.id == listing_id))
        listing = result.scalar_one_or_none()
        if listing is None:
            raise ResourceNotFoundError(
                "Listing", str(listing_id),
                context=ErrorContext(listing_id=str(listing_id)),
            )
        return listing

    async def delete(self, listing_id: ListingId, caller: Caller) -> DeleteResult:
        require_admin(caller, "delete listings")

        async with transaction_scope(self.db):
            listing = await self.get(listing_id)
            images = list(listing.images or [])
            await self.db.delete(listing)

        result = DeleteResult(listing_id=listing_id)
        result.image_removal_errors = await self._remove_from_host(
            listing_id, [image.get("externalId") for image in images],
        )
        logger.info(
            f"Listing deleted ({len(images)} images, "
            f"{len(result.image_removal_errors)} removal failures)",
            extra={"listing_id": listing_id},
        )
        return result

    async def add_images(
        self, listing_id: ListingId, body: ImagesAdd, caller: Caller,
    ) -> Listing:
        async with transaction_scope(self.db):
            listing = await self.get(listing_id)
            require_owner_or_admin(caller, listing.author_id, "add listing images")
            # JSON columns track reassignment, not in-place mutation
            listing.images = list(listing.images or []) + [
                img.model_dump(by_alias=True) for img in body.images
            ]
            await self.db.flush()

        logger.info(
            f"Added {len(body.images)} images", extra={"listing_id": listing_id},
        )
        return listing

    async def remove_image(
        self, listing_id: ListingId, external_id: str, caller: Caller,
    ) -> ImageRemoval:
        async with transaction_scope(self.db):
            listing = await self.get(listing_id)
            require_owner_or_admin(caller, listing.author_id, "remove listing images")
            kept = [
                image for image in listing.images or []
                if image.get("externalId") != external_id
            ]
            if len(kept) == len(listing.images or []):
                raise ResourceNotFoundError(
                    "Image", external_id,
                    context=ErrorContext(listing_id=str(listing_id)),
                )
            listing.images = kept
            await self.db.flush()

        errors = await self._remove_from_host(listing_id, [external_id])
        return ImageRemoval(listing=listing, image_removal_errors=errors)

    async def update_tips(
        self, listing_id: ListingId, body: TipsUpdate, caller: Caller,
    ) -> Listing:
        return await self._edit(listing_id, caller, "edit listing tips", {
            "permits_required": body.permits_required,
            "permits_description": body.permits_description,
            "best_season": body.best_season,
            "difficulty": body.difficulty.value,
            "extra_advice": body.extra_advice,
        })

    async def update_description(
        self, listing_id: ListingId, body: DescriptionUpdate, caller: Caller,
    ) -> Listing:
        return await self._edit(
            listing_id, caller, "edit listing description",
            {"description": body.description.strip()},
        )

    async def update_title(
        self, listing_id: ListingId, body: TitleUpdate, caller: Caller,
    ) -> Listing:
        return await self._edit(
            listing_id, caller, "edit listing title", {"name": body.title.strip()},
        )

    async def update_location(
        self, listing_id: ListingId, body: LocationUpdate, caller: Caller,
    ) -> Listing:
        return await self._edit(listing_id, caller, "edit listing location", {
            "latitude": body.latitude, "longitude": body.longitude,
        })

    async def update_taxonomy(
        self, listing_id: ListingId, body: TagsCategoriesUpdate, caller: Caller,
    ) -> Listing:
        async with transaction_scope(self.db):
            listing = await self.get(listing_id)
            require_owner_or_admin(caller, listing.author_id, "edit listing tags")
            # Diff instead of replace: re-inserting a kept (listing_id, value) key would
            # collide with its pending delete in the same flush
            wanted_categories = [c.value for c in dict.fromkeys(body.categories)]
            listing.category_rows = [
                row for row in listing.category_rows if row.category in wanted_categories
            ] + [
                ListingCategory(category=c)
                for c in wanted_categories if c not in listing.categories
            ]
            wanted_tags = [t.value for t in dict.fromkeys(body.tags)]
            listing.tag_rows = [
                row for row in listing.tag_rows if row.tag in wanted_tags
            ] + [ListingTag(tag=t) for t in wanted_tags if t not in listing.tags]
            await self.db.flush()
        return listing

    async def set_verified(
        self, listing_id: ListingId, verified: bool, caller: Caller,
    ) -> Listing:
        require_admin(caller, "verify listings")
        async with transaction_scope(self.db):
            listing = await self.get(listing_id)
            listing.is_verified = verified
            await self.db.flush()
        logger.info(f"Listing verified={verified}", extra={"listing_id": listing_id})
        return listing

    async def _edit(
        self, listing_id: ListingId, caller: Caller, action: str, values: dict[str, Any],
    ) -> Listing:
        async with transaction_scope(self.db):
            listing = await self.get(listing_id)
            require_owner_or_admin(caller, listing.author_id, action)
            for name, value in values.items():
                setattr(listing, name, value)
            await self.db.flush()
        return listing

    async def _remove_from_host(
        self, listing_id: ListingId, external_ids: list[str | None],
    ) -> list[dict[str, str]]:
        """Best-effort removal; each failure becomes an {externalId, error} diagnostic."""
        errors = []
        for external_id in external_ids:
            if not external_id or self.images is None:
                continue
            try:
                await self.images.remove(external_id)
            except ExternalStorageError as e:
                errors.append({"externalId": external_id, "error": e.message})
                logger.warning(
                    f"Image removal failed: {e.message}",
                    extra={"listing_id": listing_id, "external_id": external_id},
                )
        return errors
