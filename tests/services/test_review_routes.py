"""Review Routes: HTTP surface of the rating ledger."""

from uuid import uuid4

AUTHOR = {"X-User-Id": "reviewer-1"}
OTHER = {"X-User-Id": "reviewer-2"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}


async def _listing_stats(client, listing_id):
    data = (await client.get(f"/api/v1/listings/{listing_id}")).json()["data"]
    return data["averageRating"], data["ratingsCount"]


async def test_review_lifecycle_updates_listing(client, make_listing):
    listing_id = await make_listing()

    res = await client.post(
        f"/api/v1/reviews/{listing_id}",
        json={"reviewerName": "Asha", "rating": 4, "message": "Worth it"},
        headers=AUTHOR,
    )
    assert res.status_code == 201
    review = res.json()["data"]
    assert review["reviewerId"] == "reviewer-1"
    assert review["listingId"] == str(listing_id)
    assert await _listing_stats(client, listing_id) == (4.0, 1)

    res = await client.patch(
        f"/api/v1/reviews/{review['id']}", json={"rating": 2}, headers=AUTHOR,
    )
    assert res.status_code == 200
    assert res.json()["data"]["rating"] == 2
    assert await _listing_stats(client, listing_id) == (2.0, 1)

    res = await client.delete(f"/api/v1/reviews/{review['id']}", headers=AUTHOR)
    assert res.status_code == 200
    assert await _listing_stats(client, listing_id) == (0.0, 0)

    res = await client.get(f"/api/v1/reviews/{listing_id}")
    assert res.json()["data"] == []


async def test_review_on_missing_listing_is_404(client):
    res = await client.post(
        f"/api/v1/reviews/{uuid4()}", json={"reviewerName": "Asha", "rating": 3},
    )
    assert res.status_code == 404


async def test_rating_out_of_range_is_400(client, make_listing):
    listing_id = await make_listing()
    res = await client.post(
        f"/api/v1/reviews/{listing_id}", json={"reviewerName": "Asha", "rating": 6},
    )
    assert res.status_code == 400


async def test_update_requires_rating_or_message(client, make_listing):
    listing_id = await make_listing()
    review = (await client.post(
        f"/api/v1/reviews/{listing_id}",
        json={"reviewerName": "Asha", "rating": 3}, headers=AUTHOR,
    )).json()["data"]
    res = await client.patch(f"/api/v1/reviews/{review['id']}", json={}, headers=AUTHOR)
    assert res.status_code == 400


async def test_only_author_or_admin_may_change_review(client, make_listing):
    listing_id = await make_listing()
    review = (await client.post(
        f"/api/v1/reviews/{listing_id}",
        json={"reviewerName": "Asha", "rating": 5}, headers=AUTHOR,
    )).json()["data"]

    res = await client.patch(
        f"/api/v1/reviews/{review['id']}", json={"message": "edited"}, headers=OTHER,
    )
    assert res.status_code == 403
    res = await client.delete(f"/api/v1/reviews/{review['id']}")
    assert res.status_code == 403

    res = await client.delete(f"/api/v1/reviews/{review['id']}", headers=ADMIN)
    assert res.status_code == 200
    res = await client.delete(f"/api/v1/reviews/{review['id']}", headers=ADMIN)
    assert res.status_code == 404


async def test_store_failure_is_409_and_persists_nothing(client, make_listing, test_engine):
    listing_id = await make_listing()
    async with test_engine.begin() as conn:
        await conn.exec_driver_sql(
            "CREATE TRIGGER refuse_aggregate BEFORE UPDATE OF ratings_count ON listings "
            "BEGIN SELECT RAISE(ABORT, 'aggregate write refused'); END",
        )

    res = await client.post(
        f"/api/v1/reviews/{listing_id}", json={"reviewerName": "Asha", "rating": 5},
    )
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "CONSISTENCY_CONFLICT"

    res = await client.get(f"/api/v1/reviews/{listing_id}")
    assert res.json()["data"] == []
    assert await _listing_stats(client, listing_id) == (0.0, 0)
