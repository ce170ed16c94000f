"""Cursor Codec: opaque, URL-safe pagination tokens for the listing feed.

Invariants:
    - decode_cursor(encode_cursor(f)) == f for every JSON-native field map
    - decode_cursor raises CursorError for anything that is not base64url(JSON object); it never
      inspects field meaning
    - FeedCursor.to_fields() emits exactly the sort-key fields of its sort mode plus the "sort" tag
    - FeedCursor.from_token() rejects a token issued under a different sort mode

Design Decisions:
    - Padding stripped on encode, restored on decode: tokens travel as query parameters
    - FeedCursor is a tagged value keyed by SortMode rather than a loose dict
      (ADR: a rating cursor replayed against the distance feed must fail loudly)
"""

import base64
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping
from uuid import UUID

from placefeed.core.domain_types import SortMode
from placefeed.core.errors import CursorError

SORT_TAG = "sort"

# Sort-key fields a cursor carries beyond (createdAt, _id), per sort mode
CURSOR_FIELDS: dict[SortMode, tuple[str, ...]] = {
    SortMode.NEWEST: (),
    SortMode.RATING_DESC: ("averageRating",),
    SortMode.RATING_ASC: ("averageRating",),
    SortMode.LIKES_DESC: ("likesCount",),
    SortMode.LIKES_ASC: ("likesCount",),
    SortMode.DISTANCE: ("distanceMeters", "averageRating"),
}


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    raise TypeError(f"Cursor field of type {type(value).__name__} is not serializable")


def encode_cursor(fields: Mapping[str, Any]) -> str:
    """Field map -> URL-safe opaque token."""
    payload = json.dumps(
        dict(fields), separators=(",", ":"), sort_keys=True, default=_json_default,
    )
    token = base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")
    return token.rstrip("=")


def decode_cursor(token: str) -> dict[str, Any]:
    """Opaque token -> field map. Structural checks only."""
    if not isinstance(token, str) or not token.strip():
        raise CursorError()
    token = token.strip()
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        data = json.loads(raw.decode("utf-8"))
    except ValueError:
        # binascii.Error, UnicodeError and JSONDecodeError are all ValueError
        raise CursorError()
    if not isinstance(data, dict):
        raise CursorError()
    return data


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class FeedCursor:
    """Sort-key tuple of the last row of a page, tagged with its sort mode."""
    sort_mode: SortMode
    created_at: datetime
    listing_id: UUID
    average_rating: float | None = None
    likes_count: int | None = None
    distance_meters: float | None = None

    def to_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {
            SORT_TAG: self.sort_mode.value,
            "createdAt": self.created_at.isoformat(),
            "_id": str(self.listing_id),
        }
        for name in CURSOR_FIELDS[self.sort_mode]:
            fields[name] = self.value_of(name)
        return fields

    def encode(self) -> str:
        return encode_cursor(self.to_fields())

    def value_of(self, field: str) -> Any:
        """Logical sort-key name -> value carried by this cursor."""
        return {
            "createdAt": self.created_at,
            "_id": self.listing_id,
            "averageRating": self.average_rating,
            "likesCount": self.likes_count,
            "distanceMeters": self.distance_meters,
        }[field]

    @classmethod
    def from_token(cls, token: str, sort_mode: SortMode) -> "FeedCursor":
        return cls.from_fields(decode_cursor(token), sort_mode)

    @classmethod
    def from_fields(
        cls, fields: Mapping[str, Any], sort_mode: SortMode,
    ) -> "FeedCursor":
        """Validate a decoded field map against the sort mode it is replayed under."""
        if fields.get(SORT_TAG) != sort_mode.value:
            raise CursorError("Cursor was issued for a different sort order")

        created_raw = fields.get("createdAt")
        if not isinstance(created_raw, str):
            raise CursorError("Cursor is missing createdAt")
        try:
            created_at = datetime.fromisoformat(created_raw)
        except ValueError:
            raise CursorError("Cursor createdAt is not a timestamp")

        id_raw = fields.get("_id")
        if not isinstance(id_raw, str):
            raise CursorError("Cursor is missing _id")
        try:
            listing_id = UUID(id_raw)
        except ValueError:
            raise CursorError("Cursor _id is not a valid identifier")

        extras: dict[str, Any] = {}
        for name in CURSOR_FIELDS[sort_mode]:
            value = fields.get(name)
            if not _is_number(value):
                raise CursorError(f"Cursor {name} must be numeric")
            extras[name] = value

        likes = extras.get("likesCount")
        if likes is not None and not float(likes).is_integer():
            raise CursorError("Cursor likesCount must be an integer")

        return cls(
            sort_mode=sort_mode,
            created_at=created_at,
            listing_id=listing_id,
            average_rating=(
                float(extras["averageRating"]) if "averageRating" in extras else None
            ),
            likes_count=int(likes) if likes is not None else None,
            distance_meters=(
                float(extras["distanceMeters"]) if "distanceMeters" in extras else None
            ),
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any], sort_mode: SortMode) -> "FeedCursor":
        """Cursor positioned at a feed row. Absent numeric keys default to 0."""
        return cls(
            sort_mode=sort_mode,
            created_at=row["createdAt"],
            listing_id=row["id"],
            average_rating=(
                float(row.get("averageRating") or 0)
                if "averageRating" in CURSOR_FIELDS[sort_mode] else None
            ),
            likes_count=(
                int(row.get("likesCount") or 0)
                if "likesCount" in CURSOR_FIELDS[sort_mode] else None
            ),
            distance_meters=(
                float(row.get("distanceMeters") or 0)
                if "distanceMeters" in CURSOR_FIELDS[sort_mode] else None
            ),
        )
