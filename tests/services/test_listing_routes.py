"""Listing Routes: HTTP contract of the feed, CRUD, verification and like endpoints.

Invariants:
    - Feed response shape is {data, nextCursor, hasNextPage}
    - Invalid cursor -> 400 INVALID_CURSOR; distance without coordinates -> 400 on field "sort"
    - Delete never fails on image host errors; failures come back as imageRemovalErrors
    - Admin-only and owner-only actions answer 403 for other callers
    - Feed page size default and cap come from settings
    - Image removal targets only descriptors the listing holds; host failures are diagnostics
"""

from uuid import uuid4

from sqlalchemy import func, select

from placefeed.api.routes import listings as listing_routes
from placefeed.config import Settings
from placefeed.models.listing_like import ListingLike
from placefeed.models.review import Review

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
OWNER = {"X-User-Id": "author-1"}
STRANGER = {"X-User-Id": "someone-else"}

NEW_LISTING = {
    "name": "Rara Lake",
    "description": "The largest lake in Nepal, quiet and remote.",
    "categories": ["Nature", "Adventure"],
    "tags": ["Lakes", "Trekking"],
    "latitude": 29.527,
    "longitude": 82.088,
    "difficulty": "Challenging",
    "permitsRequired": True,
    "images": [
        {"url": "https://res.cloudinary.com/x/rara.jpg", "externalId": "listings/rara", "format": "jpg"},
    ],
}


async def test_filter_returns_page_envelope(client, make_listing):
    await make_listing("one", minutes=1)
    await make_listing("two", minutes=2)
    res = await client.get("/api/v1/listings/filter", params={"sort": "newest", "limit": 1})
    assert res.status_code == 200
    body = res.json()
    assert set(body) == {"data", "nextCursor", "hasNextPage"}
    assert body["hasNextPage"] is True
    assert [item["name"] for item in body["data"]] == ["two"]

    res = await client.get(
        "/api/v1/listings/filter",
        params={"sort": "newest", "limit": 1, "cursor": body["nextCursor"]},
    )
    body = res.json()
    assert [item["name"] for item in body["data"]] == ["one"]
    assert body["hasNextPage"] is False
    assert body["nextCursor"] is None


async def test_filter_accepts_repeated_categories(client, make_listing):
    await make_listing("nature", categories=("Nature",))
    await make_listing("culture", categories=("Culture",))
    await make_listing("spiritual", categories=("Spiritual",))
    res = await client.get(
        "/api/v1/listings/filter",
        params=[("categories", "Nature"), ("categories", "Culture"), ("sort", "newest")],
    )
    assert res.status_code == 200
    assert {item["name"] for item in res.json()["data"]} == {"nature", "culture"}


async def test_filter_invalid_cursor_is_400(client):
    res = await client.get("/api/v1/listings/filter", params={"cursor": "not-a-cursor!!"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "INVALID_CURSOR"


async def test_filter_distance_without_coordinates_is_400(client):
    res = await client.get("/api/v1/listings/filter", params={"sort": "distance"})
    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["context"]["field"] == "sort"


async def test_filter_out_of_range_distance_is_400(client):
    res = await client.get(
        "/api/v1/listings/filter", params={"lat": 1, "lng": 1, "distanceKm": 400},
    )
    assert res.status_code == 400
    assert res.json()["error"]["context"]["field"] == "distanceKm"


async def test_filter_unknown_category_is_400(client):
    res = await client.get("/api/v1/listings/filter", params={"categories": "Beaches"})
    assert res.status_code == 400


async def test_create_then_get_listing(client):
    res = await client.post("/api/v1/listings", json=NEW_LISTING, headers=OWNER)
    assert res.status_code == 201
    created = res.json()["data"]
    assert created["author"] == "author-1"
    assert created["averageRating"] == 0.0
    assert created["ratingsCount"] == 0
    assert created["likesCount"] == 0
    assert created["categories"] == ["Adventure", "Nature"]

    res = await client.get(f"/api/v1/listings/{created['id']}", headers=OWNER)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["likedByUser"] is False
    assert data["location"]["coordinates"] == [82.088, 29.527]


async def test_create_requires_identity(client):
    res = await client.post("/api/v1/listings", json=NEW_LISTING)
    assert res.status_code == 403


async def test_create_rejects_missing_category(client):
    body = {**NEW_LISTING, "categories": []}
    res = await client.post("/api/v1/listings", json=body, headers=OWNER)
    assert res.status_code == 400


async def test_get_missing_listing_is_404(client):
    res = await client.get(f"/api/v1/listings/{uuid4()}")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


async def test_delete_requires_admin(client, make_listing):
    listing_id = await make_listing()
    res = await client.delete(f"/api/v1/listings/{listing_id}", headers=OWNER)
    assert res.status_code == 403


async def test_delete_collects_image_failures(
    client, make_listing, fake_images, test_session_factory,
):
    fake_images.failing.add("listings/broken")
    listing_id = await make_listing(images=[
        {"url": "https://img/ok.jpg", "externalId": "listings/ok", "format": "jpg"},
        {"url": "https://img/broken.jpg", "externalId": "listings/broken", "format": "jpg"},
    ])
    await client.post(f"/api/v1/reviews/{listing_id}", json={"reviewerName": "A", "rating": 4})
    await client.post(f"/api/v1/listings/{listing_id}/like", headers=STRANGER)

    res = await client.delete(f"/api/v1/listings/{listing_id}", headers=ADMIN)
    assert res.status_code == 200
    body = res.json()
    assert body["deleted"] is True
    assert [e["externalId"] for e in body["imageRemovalErrors"]] == ["listings/broken"]
    assert fake_images.removed == ["listings/ok"]

    res = await client.get(f"/api/v1/listings/{listing_id}")
    assert res.status_code == 404
    async with test_session_factory() as session:
        reviews = (await session.execute(select(func.count(Review.id)))).scalar_one()
        likes = (await session.execute(select(func.count()).select_from(ListingLike))).scalar_one()
    assert (reviews, likes) == (0, 0)


async def test_owner_can_edit_title_and_stranger_cannot(client, make_listing):
    listing_id = await make_listing()
    res = await client.patch(
        f"/api/v1/listings/{listing_id}/title", json={"title": "New name"}, headers=STRANGER,
    )
    assert res.status_code == 403

    res = await client.patch(
        f"/api/v1/listings/{listing_id}/title", json={"title": "New name"}, headers=OWNER,
    )
    assert res.status_code == 200
    assert res.json()["data"]["name"] == "New name"


async def test_edit_tips_location_and_description(client, make_listing):
    listing_id = await make_listing()
    res = await client.patch(
        f"/api/v1/listings/{listing_id}/tips",
        json={"permitsRequired": True, "bestSeason": "Autumn", "difficulty": "Easy"},
        headers=OWNER,
    )
    assert res.status_code == 200
    data = res.json()["data"]
    assert (data["permitsRequired"], data["bestSeason"], data["difficulty"]) == (
        True, "Autumn", "Easy",
    )

    res = await client.patch(
        f"/api/v1/listings/{listing_id}/location",
        json={"latitude": 28.2096, "longitude": 83.9856}, headers=ADMIN,
    )
    assert res.json()["data"]["location"]["coordinates"] == [83.9856, 28.2096]

    res = await client.patch(
        f"/api/v1/listings/{listing_id}/description",
        json={"description": "  Lakeside city under the Annapurnas.  "}, headers=OWNER,
    )
    assert res.json()["data"]["description"] == "Lakeside city under the Annapurnas."


async def test_replace_tags_and_categories_keeps_overlap(client, make_listing):
    listing_id = await make_listing(categories=("Nature", "Culture"), tags=("Lakes",))
    res = await client.patch(
        f"/api/v1/listings/{listing_id}/tags-categories",
        json={"categories": ["Nature", "Wildlife"], "tags": ["Lakes", "Safari"]},
        headers=OWNER,
    )
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["categories"] == ["Nature", "Wildlife"]
    assert data["tags"] == ["Lakes", "Safari"]


async def test_verify_is_admin_only_and_feeds_verified_filter(client, make_listing):
    listing_id = await make_listing("to verify")
    await make_listing("other")
    res = await client.patch(
        f"/api/v1/listings/{listing_id}/verify", json={"isVerified": True}, headers=OWNER,
    )
    assert res.status_code == 403

    res = await client.patch(
        f"/api/v1/listings/{listing_id}/verify", json={"isVerified": True}, headers=ADMIN,
    )
    assert res.json()["data"]["isVerified"] is True

    res = await client.get("/api/v1/listings/filter", params={"verifiedOnly": "true"})
    assert [item["name"] for item in res.json()["data"]] == ["to verify"]


async def test_like_and_unlike_over_http(client, make_listing):
    listing_id = await make_listing()
    url = f"/api/v1/listings/{listing_id}/like"

    res = await client.post(url, headers=STRANGER)
    assert res.json() == {"message": "Listing liked", "changed": True, "likesCount": 1}
    res = await client.post(url, headers=STRANGER)
    assert res.json()["message"] == "Already liked"

    res = await client.get(f"/api/v1/listings/{listing_id}", headers=STRANGER)
    assert res.json()["data"]["likedByUser"] is True

    res = await client.patch(url, headers=STRANGER)
    assert res.json()["likesCount"] == 0


async def test_anonymous_unlike_at_zero_is_404(client, make_listing):
    listing_id = await make_listing()
    res = await client.patch(f"/api/v1/listings/{listing_id}/like")
    assert res.status_code == 404


async def test_health_probes(client):
    res = await client.get("/api/v1/health/")
    assert res.json()["status"] == "healthy"
    res = await client.get("/api/v1/health/ready")
    assert res.status_code == 200


async def test_unlike_is_patch(client, make_listing):
    listing_id = await make_listing(likes_count=1)
    res = await client.delete(f"/api/v1/listings/{listing_id}/like")
    assert res.status_code == 405


async def test_feed_limits_come_from_settings(client, make_listing, monkeypatch):
    for minute in range(4):
        await make_listing(f"listing {minute}", minutes=minute)
    settings = Settings(feed_default_limit=2, feed_max_limit=3)
    monkeypatch.setattr(listing_routes, "get_settings", lambda: settings)

    res = await client.get("/api/v1/listings/filter", params={"sort": "newest"})
    body = res.json()
    assert [item["name"] for item in body["data"]] == ["listing 3", "listing 2"]
    assert body["hasNextPage"] is True

    res = await client.get("/api/v1/listings/filter", params={"sort": "newest", "limit": 4})
    assert res.status_code == 400
    assert res.json()["error"]["context"]["field"] == "limit"


# ─── Images ──────────────────────────────────────────────────────

IMAGE_A = {"url": "https://img/a.jpg", "externalId": "listings/a", "format": "jpg"}
IMAGE_B = {"url": "https://img/b.png", "externalId": "listings/b", "format": "png"}


async def test_owner_adds_then_removes_image(client, make_listing, fake_images):
    listing_id = await make_listing(images=[IMAGE_A])
    url = f"/api/v1/listings/{listing_id}/images"

    res = await client.post(url, json={"images": [IMAGE_B]}, headers=OWNER)
    assert res.status_code == 200
    assert res.json()["data"]["images"] == [IMAGE_A, IMAGE_B]

    res = await client.request(
        "DELETE", url, json={"externalId": "listings/a"}, headers=OWNER,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["data"]["images"] == [IMAGE_B]
    assert body["imageRemovalErrors"] == []
    assert fake_images.removed == ["listings/a"]

    res = await client.get(f"/api/v1/listings/{listing_id}")
    assert res.json()["data"]["images"] == [IMAGE_B]


async def test_image_host_failure_still_drops_descriptor(client, make_listing, fake_images):
    fake_images.failing.add("listings/a")
    listing_id = await make_listing(images=[IMAGE_A])

    res = await client.request(
        "DELETE", f"/api/v1/listings/{listing_id}/images",
        json={"externalId": "listings/a"}, headers=ADMIN,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["data"]["images"] == []
    assert [e["externalId"] for e in body["imageRemovalErrors"]] == ["listings/a"]


async def test_removing_foreign_image_is_404_and_skips_host(client, make_listing, fake_images):
    listing_id = await make_listing(images=[IMAGE_A])
    res = await client.request(
        "DELETE", f"/api/v1/listings/{listing_id}/images",
        json={"externalId": "listings/someone-elses"}, headers=OWNER,
    )
    assert res.status_code == 404
    assert fake_images.removed == []


async def test_stranger_cannot_manage_images(client, make_listing, fake_images):
    listing_id = await make_listing(images=[IMAGE_A])
    url = f"/api/v1/listings/{listing_id}/images"

    res = await client.post(url, json={"images": [IMAGE_B]}, headers=STRANGER)
    assert res.status_code == 403
    res = await client.request(
        "DELETE", url, json={"externalId": "listings/a"}, headers=STRANGER,
    )
    assert res.status_code == 403
    assert fake_images.removed == []


async def test_add_images_requires_at_least_one(client, make_listing):
    listing_id = await make_listing()
    res = await client.post(
        f"/api/v1/listings/{listing_id}/images", json={"images": []}, headers=OWNER,
    )
    assert res.status_code == 400
