"""ListingLike ORM: the liker set of a listing, one row per (listing, user).

Invariants:
    - (listing_id, user_id) is the primary key: a user likes a listing at most once
    - Anonymous likes have no row; they only move listings.likes_count
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from placefeed.db.base import Base


class ListingLike(Base):
    __tablename__ = "listing_likes"

    listing_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("listings.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
