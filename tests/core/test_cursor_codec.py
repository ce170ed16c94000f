"""Cursor Codec: opaque token encoding and tagged FeedCursor validation.

Tests:
    - decode(encode(f)) == f; tokens are URL-safe with no padding
    - Garbage, non-JSON and non-object payloads raise CursorError
    - FeedCursor rejects tokens from another sort mode and malformed fields
    - from_row defaults absent numeric keys to 0
"""

import base64
import json
from datetime import datetime, timezone
from uuid import uuid4

import pytest

from placefeed.core.cursor_codec import FeedCursor, decode_cursor, encode_cursor
from placefeed.core.domain_types import SortMode
from placefeed.core.errors import CursorError

CREATED = datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)


def _raw_token(payload) -> str:
    return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")


def test_round_trip_preserves_fields():
    fields = {
        "createdAt": "2025-03-01T08:30:00+00:00",
        "_id": str(uuid4()),
        "averageRating": 4.25,
        "likesCount": 7,
    }
    assert decode_cursor(encode_cursor(fields)) == fields


def test_token_is_url_safe_without_padding():
    token = encode_cursor({"name": "???>>>", "n": 1})
    assert "=" not in token
    assert "+" not in token and "/" not in token


def test_decode_rejects_non_base64():
    with pytest.raises(CursorError):
        decode_cursor("***not-base64***")


def test_decode_rejects_non_json():
    token = base64.urlsafe_b64encode(b"not json at all").decode()
    with pytest.raises(CursorError):
        decode_cursor(token)


def test_decode_rejects_non_object_payload():
    with pytest.raises(CursorError):
        decode_cursor(_raw_token([1, 2, 3]))


def test_decode_rejects_empty_token():
    with pytest.raises(CursorError):
        decode_cursor("   ")


def test_feed_cursor_round_trips_through_token():
    cursor = FeedCursor(
        sort_mode=SortMode.DISTANCE,
        created_at=CREATED,
        listing_id=uuid4(),
        average_rating=3.5,
        distance_meters=1234.5,
    )
    restored = FeedCursor.from_token(cursor.encode(), SortMode.DISTANCE)
    assert restored == cursor


def test_to_fields_carries_only_sort_mode_keys():
    cursor = FeedCursor(
        sort_mode=SortMode.LIKES_DESC, created_at=CREATED, listing_id=uuid4(),
        likes_count=12,
    )
    assert set(cursor.to_fields()) == {"sort", "createdAt", "_id", "likesCount"}


def test_cursor_from_other_sort_mode_is_rejected():
    cursor = FeedCursor(
        sort_mode=SortMode.RATING_DESC, created_at=CREATED, listing_id=uuid4(),
        average_rating=4.0,
    )
    with pytest.raises(CursorError):
        FeedCursor.from_token(cursor.encode(), SortMode.DISTANCE)


def test_malformed_id_is_rejected():
    token = encode_cursor({
        "sort": "newest", "createdAt": CREATED.isoformat(), "_id": "not-a-uuid",
    })
    with pytest.raises(CursorError):
        FeedCursor.from_token(token, SortMode.NEWEST)


def test_missing_sort_key_is_rejected():
    token = encode_cursor({
        "sort": "rating_desc", "createdAt": CREATED.isoformat(), "_id": str(uuid4()),
    })
    with pytest.raises(CursorError):
        FeedCursor.from_token(token, SortMode.RATING_DESC)


def test_non_numeric_sort_key_is_rejected():
    token = encode_cursor({
        "sort": "likes_asc", "createdAt": CREATED.isoformat(), "_id": str(uuid4()),
        "likesCount": "many",
    })
    with pytest.raises(CursorError):
        FeedCursor.from_token(token, SortMode.LIKES_ASC)


def test_bad_timestamp_is_rejected():
    token = encode_cursor({"sort": "newest", "createdAt": "yesterday", "_id": str(uuid4())})
    with pytest.raises(CursorError):
        FeedCursor.from_token(token, SortMode.NEWEST)


def test_from_row_defaults_missing_numerics_to_zero():
    row = {"id": uuid4(), "createdAt": CREATED}
    cursor = FeedCursor.from_row(row, SortMode.DISTANCE)
    assert cursor.distance_meters == 0.0
    assert cursor.average_rating == 0.0
    assert cursor.likes_count is None
