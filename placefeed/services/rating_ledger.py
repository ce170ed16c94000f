"""Rating Ledger: keeps Listing.average_rating / ratings_count equal to the mean and count of
its public reviews, updated incrementally on every review create / re-rate / soft-delete.

Invariants:
    - Each mutation is ONE transaction_scope spanning the review row and the listing row:
      both writes commit or neither does
    - Rows are claimed with a conditional UPDATE ... RETURNING before anything is read for a
      write: the UPDATE takes the row lock on PostgreSQL and the write lock on SQLite, so
      concurrent writers serialize and always compute from committed values
    - Lock order is review, then listing (create claims only the listing)
    - Missing listing on create -> ResourceNotFoundError, nothing persisted (no orphan review)
    - Update/delete of a missing or non-public review -> ResourceNotFoundError, no side effects;
      of two concurrent deletes of one review exactly one succeeds
    - Message-only (or same-rating) update writes the review only, never the aggregate
    - Deleting the last public review resets the listing to (0.0, 0)

Design Decisions:
    - Arithmetic lives in core/rating_math.py (pure); this module owns only IO and the unit
      of work (ADR: functional core, imperative shell)
    - Claims touch updated_at: a claim is a real (if small) write, never a no-op UPDATE
    - recompute() is the admin repair path; the hot path never rescans reviews
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from placefeed.core.domain_types import ListingId, Rating, ReviewId, UserId
from placefeed.core.errors import ErrorContext, ResourceNotFoundError
from placefeed.core.rating_math import (
    RatingAggregate, add_rating, recompute, remove_rating, replace_rating,
)
from placefeed.infrastructure.database import transaction_scope
from placefeed.models.listing import Listing
from placefeed.models.review import Review

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RatingLedger:
    """Review mutations with their compensating listing-aggregate updates."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_review(
        self,
        listing_id: ListingId,
        reviewer_name: str,
        rating: Rating,
        message: str = "",
        reviewer_id: UserId | None = None,
    ) -> Review:
        async with transaction_scope(self.db):
            current = await self._claim_listing(listing_id)
            review = Review(
                listing_id=listing_id,
                reviewer_name=reviewer_name,
                reviewer_id=reviewer_id,
                rating=rating,
                message=message,
                is_public=True,
            )
            self.db.add(review)
            await self.db.flush()
            aggregate = add_rating(current, rating)
            await self._write_aggregate(listing_id, aggregate)

        logger.info(
            f"Review created: rating={rating}, listing now "
            f"{aggregate.average:.3f} over {aggregate.count}",
            extra={"listing_id": listing_id, "review_id": review.id},
        )
        return review

    async def update_review(
        self,
        review_id: ReviewId,
        rating: Rating | None = None,
        message: str | None = None,
    ) -> Review:
        changes = {"updated_at": _utcnow()}
        if message is not None:
            changes["message"] = message

        async with transaction_scope(self.db):
            # RETURNING runs before the rating moves, so this is the rating being replaced
            claimed = await self._claim_review(review_id, changes)
            old_rating = claimed.rating
            if rating is not None and rating != old_rating:
                current = await self._claim_listing(claimed.listing_id)
                await self.db.execute(
                    update(Review)
                    .where(Review.id == review_id)
                    .values(rating=rating)
                    .execution_options(synchronize_session=False),
                )
                await self._write_aggregate(
                    claimed.listing_id, replace_rating(current, old_rating, rating),
                )
            review = await self._load_review(review_id)

        logger.info(
            f"Review updated: rating {old_rating} -> {review.rating}",
            extra={"listing_id": claimed.listing_id, "review_id": review_id},
        )
        return review

    async def delete_review(self, review_id: ReviewId) -> Review:
        """Soft-delete: the row stays for audit with is_public=False."""
        async with transaction_scope(self.db):
            claimed = await self._claim_review(
                review_id, {"is_public": False, "updated_at": _utcnow()},
            )
            current = await self._claim_listing(claimed.listing_id)
            aggregate = remove_rating(current, claimed.rating)
            await self._write_aggregate(claimed.listing_id, aggregate)
            review = await self._load_review(review_id)

        logger.info(
            f"Review soft-deleted, listing now {aggregate.average:.3f} "
            f"over {aggregate.count}",
            extra={"listing_id": claimed.listing_id, "review_id": review_id},
        )
        return review

    async def get_review(self, review_id: ReviewId) -> Review:
        """Public review by id (owner checks at the route need reviewer_id)."""
        result = await self.db.execute(
            select(Review).where(Review.id == review_id, Review.is_public.is_(True)),
        )
        review = result.scalar_one_or_none()
        if review is None:
            raise _review_not_found(review_id)
        return review

    async def list_public_reviews(self, listing_id: ListingId) -> list[Review]:
        """Public reviews of a listing. Order is not part of the contract."""
        await self._require_listing(listing_id)
        result = await self.db.execute(
            select(Review).where(
                Review.listing_id == listing_id, Review.is_public.is_(True),
            ),
        )
        return list(result.scalars().all())

    async def recompute(self, listing_id: ListingId) -> RatingAggregate:
        """Rebuild the aggregate from the public reviews (admin repair)."""
        async with transaction_scope(self.db):
            await self._claim_listing(listing_id)
            result = await self.db.execute(
                select(Review.rating).where(
                    Review.listing_id == listing_id, Review.is_public.is_(True),
                ),
            )
            aggregate = recompute(result.scalars().all())
            await self._write_aggregate(listing_id, aggregate)

        logger.info(
            f"Rating aggregate recomputed: {aggregate.average:.3f} over {aggregate.count}",
            extra={"listing_id": listing_id},
        )
        return aggregate

    # ─── Helpers ─────────────────────────────────────────────────

    async def _claim_listing(self, listing_id: ListingId) -> RatingAggregate:
        """Lock the listing row and return its committed aggregate."""
        result = await self.db.execute(
            update(Listing)
            .where(Listing.id == listing_id)
            .values(updated_at=_utcnow())
            .returning(Listing.average_rating, Listing.ratings_count)
            .execution_options(synchronize_session=False),
        )
        row = result.one_or_none()
        if row is None:
            raise ResourceNotFoundError(
                "Listing", str(listing_id),
                context=ErrorContext(listing_id=str(listing_id)),
            )
        return RatingAggregate(
            average=row.average_rating or 0.0, count=row.ratings_count or 0,
        )

    async def _claim_review(self, review_id: ReviewId, changes: dict) -> Row:
        """Apply changes to a public review; returns (listing_id, rating) or raises not-found."""
        result = await self.db.execute(
            update(Review)
            .where(Review.id == review_id, Review.is_public.is_(True))
            .values(**changes)
            .returning(Review.listing_id, Review.rating)
            .execution_options(synchronize_session=False),
        )
        row = result.one_or_none()
        if row is None:
            raise _review_not_found(review_id)
        return row

    async def _load_review(self, review_id: ReviewId) -> Review:
        result = await self.db.execute(
            select(Review)
            .where(Review.id == review_id)
            .execution_options(populate_existing=True),
        )
        return result.scalar_one()

    async def _write_aggregate(
        self, listing_id: ListingId, aggregate: RatingAggregate,
    ) -> None:
        await self.db.execute(
            update(Listing)
            .where(Listing.id == listing_id)
            .values(average_rating=aggregate.average, ratings_count=aggregate.count)
            .execution_options(synchronize_session=False),
        )

    async def _require_listing(self, listing_id: ListingId) -> None:
        result = await self.db.execute(select(Listing.id).where(Listing.id == listing_id))
        if result.scalar_one_or_none() is None:
            raise ResourceNotFoundError(
                "Listing", str(listing_id),
                context=ErrorContext(listing_id=str(listing_id)),
            )


def _review_not_found(review_id: ReviewId) -> ResourceNotFoundError:
    return ResourceNotFoundError(
        "Review", str(review_id), context=ErrorContext(review_id=str(review_id)),
    )
