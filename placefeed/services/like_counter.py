"""Like Counter: per-user idempotent like/unlike with an anonymous fallback.

Invariants:
    - likes_count never goes below 0
    - Authenticated: the (listing_id, user_id) liker row and likes_count move together in one
      transaction; liking twice changes the count once ("Already liked")
    - Authenticated unlike only decrements when the liker row exists and the count is positive
    - Anonymous like always increments; anonymous unlike decrements only a positive count
    - Missing listing -> ResourceNotFoundError

Design Decisions:
    - Counter moves through conditional UPDATE statements (likes_count = likes_count +/- 1 with
      the floor in the WHERE clause), never read-modify-write in Python
    - Anonymous unlike can cancel another anonymous caller's like: there is no identity to
      match, and the count floor is the only guard
"""

import logging
from dataclasses import dataclass

from sqlalchemy import delete, exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from placefeed.core.domain_types import ListingId, UserId
from placefeed.core.errors import ConsistencyError, ErrorContext, ResourceNotFoundError
from placefeed.infrastructure.database import transaction_scope
from placefeed.models.listing import Listing
from placefeed.models.listing_like import ListingLike

logger = logging.getLogger(__name__)

ALREADY_LIKED = "Already liked"
LIKED = "Listing liked"
UNLIKED = "Listing unliked"
NOT_PREVIOUSLY_LIKED = "Not previously liked"
ALREADY_AT_ZERO = "Like already at zero"


@dataclass(frozen=True)
class LikeOutcome:
    message: str
    changed: bool
    likes_count: int

    def to_response(self) -> dict:
        return {
            "message": self.message,
            "changed": self.changed,
            "likesCount": self.likes_count,
        }


def _not_found(listing_id: ListingId, message: str | None = None) -> ResourceNotFoundError:
    return ResourceNotFoundError(
        "Listing", str(listing_id),
        context=ErrorContext(listing_id=str(listing_id)), message=message,
    )


class LikeCounter:
    """Like/unlike a listing, keyed by caller identity when there is one."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def like(self, listing_id: ListingId, user_id: UserId | None = None) -> LikeOutcome:
        if user_id is None:
            return await self._like_anonymous(listing_id)

        await self._require_listing(listing_id)
        if await self._has_liked(listing_id, user_id):
            return LikeOutcome(ALREADY_LIKED, False, await self._count(listing_id))

        try:
            async with transaction_scope(self.db):
                self.db.add(ListingLike(listing_id=listing_id, user_id=user_id))
                await self.db.flush()
                await self.db.execute(self._increment(listing_id))
        except ConsistencyError as e:
            # A concurrent like from the same user won the primary-key race
            if isinstance(e.__cause__, IntegrityError):
                return LikeOutcome(ALREADY_LIKED, False, await self._count(listing_id))
            raise

        count = await self._count(listing_id)
        logger.info(f"Listing liked, count={count}", extra={"listing_id": listing_id})
        return LikeOutcome(LIKED, True, count)

    async def unlike(self, listing_id: ListingId, user_id: UserId | None = None) -> LikeOutcome:
        if user_id is None:
            return await self._unlike_anonymous(listing_id)

        async with transaction_scope(self.db):
            result = await self.db.execute(
                update(Listing)
                .where(
                    Listing.id == listing_id,
                    Listing.likes_count > 0,
                    exists().where(
                        ListingLike.listing_id == listing_id,
                        ListingLike.user_id == user_id,
                    ),
                )
                .values(likes_count=Listing.likes_count - 1)
                .execution_options(synchronize_session=False),
            )
            changed = result.rowcount == 1
            if changed:
                await self.db.execute(
                    delete(ListingLike).where(
                        ListingLike.listing_id == listing_id,
                        ListingLike.user_id == user_id,
                    ),
                )

        if changed:
            count = await self._count(listing_id)
            logger.info(f"Listing unliked, count={count}", extra={"listing_id": listing_id})
            return LikeOutcome(UNLIKED, True, count)

        await self._require_listing(listing_id)
        count = await self._count(listing_id)
        if not await self._has_liked(listing_id, user_id):
            return LikeOutcome(NOT_PREVIOUSLY_LIKED, False, count)
        return LikeOutcome(ALREADY_AT_ZERO, False, count)

    async def liked_by(self, listing_id: ListingId, user_id: UserId | None) -> bool:
        if user_id is None:
            return False
        return await self._has_liked(listing_id, user_id)

    # ─── Anonymous ───────────────────────────────────────────────

    async def _like_anonymous(self, listing_id: ListingId) -> LikeOutcome:
        async with transaction_scope(self.db):
            result = await self.db.execute(self._increment(listing_id))
            changed = result.rowcount == 1
        if not changed:
            raise _not_found(listing_id)
        return LikeOutcome(LIKED, True, await self._count(listing_id))

    async def _unlike_anonymous(self, listing_id: ListingId) -> LikeOutcome:
        async with transaction_scope(self.db):
            result = await self.db.execute(
                update(Listing)
                .where(Listing.id == listing_id, Listing.likes_count > 0)
                .values(likes_count=Listing.likes_count - 1)
                .execution_options(synchronize_session=False),
            )
            changed = result.rowcount == 1
        if not changed:
            raise _not_found(listing_id, "Listing not found or count already 0")
        return LikeOutcome(UNLIKED, True, await self._count(listing_id))

    # ─── Helpers ─────────────────────────────────────────────────

    @staticmethod
    def _increment(listing_id: ListingId):
        return (
            update(Listing)
            .where(Listing.id == listing_id)
            .values(likes_count=Listing.likes_count + 1)
            .execution_options(synchronize_session=False)
        )

    async def _require_listing(self, listing_id: ListingId) -> None:
        result = await self.db.execute(select(Listing.id).where(Listing.id == listing_id))
        if result.scalar_one_or_none() is None:
            raise _not_found(listing_id)

    async def _has_liked(self, listing_id: ListingId, user_id: UserId) -> bool:
        result = await self.db.execute(
            select(ListingLike.user_id).where(
                ListingLike.listing_id == listing_id, ListingLike.user_id == user_id,
            ),
        )
        return result.scalar_one_or_none() is not None

    async def _count(self, listing_id: ListingId) -> int:
        result = await self.db.execute(
            select(Listing.likes_count).where(Listing.id == listing_id),
        )
        return result.scalar_one_or_none() or 0
