"""Review Routes: public review reads and rating-ledger mutations under /api/v1/reviews.

Invariants:
    - Create is open to anonymous callers; reviewer_id is recorded only when known
    - Update and delete require the review's author or an admin
    - Soft-deleted reviews are invisible here (404 on update/delete, absent from lists)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from placefeed.api.deps import get_caller
from placefeed.core.errors import PermissionDeniedError
from placefeed.infrastructure.database import get_db
from placefeed.schemas.review import ReviewCreate, ReviewResponse, ReviewUpdate
from placefeed.services.listing_catalogue import Caller, require_owner_or_admin
from placefeed.services.rating_ledger import RatingLedger

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/reviews", tags=["reviews"])


def _serialize(review) -> dict:
    return ReviewResponse.model_validate(review).model_dump(mode="json", by_alias=True)


@router.get("/{listing_id}")
async def list_reviews(listing_id: UUID, db: AsyncSession = Depends(get_db)):
    reviews = await RatingLedger(db).list_public_reviews(listing_id)
    return {"data": [_serialize(r) for r in reviews]}


@router.post("/{listing_id}", status_code=status.HTTP_201_CREATED)
async def create_review(
    listing_id: UUID,
    body: ReviewCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    review = await RatingLedger(db).create_review(
        listing_id,
        reviewer_name=body.reviewer_name.strip(),
        rating=body.rating,
        message=body.message,
        reviewer_id=caller.user_id,
    )
    return {"message": "Review added successfully", "data": _serialize(review)}


@router.patch("/{review_id}")
async def update_review(
    review_id: UUID,
    body: ReviewUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    ledger = RatingLedger(db)
    await _check_review_owner(ledger, review_id, caller, "edit this review")
    review = await ledger.update_review(review_id, rating=body.rating, message=body.message)
    return {"message": "Review updated successfully", "data": _serialize(review)}


@router.delete("/{review_id}")
async def delete_review(
    review_id: UUID,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    ledger = RatingLedger(db)
    await _check_review_owner(ledger, review_id, caller, "delete this review")
    await ledger.delete_review(review_id)
    return {"message": "Review deleted successfully", "data": None}


async def _check_review_owner(
    ledger: RatingLedger, review_id: UUID, caller: Caller, action: str,
) -> None:
    if caller.user_id is None:
        raise PermissionDeniedError(action)
    review = await ledger.get_review(review_id)
    require_owner_or_admin(caller, review.reviewer_id, action)
