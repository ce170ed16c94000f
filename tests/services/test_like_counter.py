"""Like Counter: idempotent authenticated likes and floor-guarded anonymous unlikes."""

from uuid import uuid4

import pytest

from placefeed.core.errors import ResourceNotFoundError
from placefeed.services.like_counter import (
    ALREADY_AT_ZERO, ALREADY_LIKED, LIKED, NOT_PREVIOUSLY_LIKED, UNLIKED, LikeCounter,
)


async def test_like_twice_counts_once(test_db, make_listing):
    listing_id = await make_listing()
    counter = LikeCounter(test_db)

    first = await counter.like(listing_id, "user-1")
    second = await counter.like(listing_id, "user-1")

    assert (first.message, first.changed, first.likes_count) == (LIKED, True, 1)
    assert (second.message, second.changed, second.likes_count) == (ALREADY_LIKED, False, 1)
    assert await counter.liked_by(listing_id, "user-1") is True


async def test_two_users_both_count(test_db, make_listing):
    listing_id = await make_listing()
    counter = LikeCounter(test_db)
    await counter.like(listing_id, "user-1")
    outcome = await counter.like(listing_id, "user-2")
    assert outcome.likes_count == 2


async def test_unlike_removes_membership(test_db, make_listing):
    listing_id = await make_listing()
    counter = LikeCounter(test_db)
    await counter.like(listing_id, "user-1")

    outcome = await counter.unlike(listing_id, "user-1")
    assert (outcome.message, outcome.changed, outcome.likes_count) == (UNLIKED, True, 0)
    assert await counter.liked_by(listing_id, "user-1") is False


async def test_unlike_without_like_does_not_mutate(test_db, make_listing):
    listing_id = await make_listing(likes_count=3)
    outcome = await LikeCounter(test_db).unlike(listing_id, "user-1")
    assert (outcome.message, outcome.changed, outcome.likes_count) == (
        NOT_PREVIOUSLY_LIKED, False, 3,
    )


async def test_member_with_zero_count_reports_floor(test_db, make_listing):
    listing_id = await make_listing()
    counter = LikeCounter(test_db)
    await counter.like(listing_id, "user-1")
    await counter.unlike(listing_id, None)  # anonymous unlike drains the count

    outcome = await counter.unlike(listing_id, "user-1")
    assert (outcome.message, outcome.changed, outcome.likes_count) == (
        ALREADY_AT_ZERO, False, 0,
    )


async def test_anonymous_like_always_increments(test_db, make_listing):
    listing_id = await make_listing()
    counter = LikeCounter(test_db)
    await counter.like(listing_id)
    outcome = await counter.like(listing_id)
    assert outcome.likes_count == 2
    assert outcome.changed is True


async def test_anonymous_unlike_stops_at_zero(test_db, make_listing):
    listing_id = await make_listing(likes_count=1)
    counter = LikeCounter(test_db)
    outcome = await counter.unlike(listing_id)
    assert outcome.likes_count == 0

    with pytest.raises(ResourceNotFoundError):
        await counter.unlike(listing_id)


@pytest.mark.parametrize("user_id", [None, "user-1"])
async def test_missing_listing_is_not_found(test_db, user_id):
    counter = LikeCounter(test_db)
    with pytest.raises(ResourceNotFoundError):
        await counter.like(uuid4(), user_id)
    with pytest.raises(ResourceNotFoundError):
        await counter.unlike(uuid4(), user_id)
