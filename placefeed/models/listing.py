"""Listing ORM: a point of interest plus its denormalized feed aggregates.

Invariants:
    - id is UUID primary key
    - longitude in [-180, 180], latitude in [-90, 90] (validated at the schema boundary)
    - at least one category row (enforced by the catalogue service on create/update)
    - average_rating == 0 iff ratings_count == 0; written only by services/rating_ledger.py
    - likes_count >= 0; written only by services/like_counter.py
    - images is an ordered JSON list of {url, externalId, format} from the image host

Design Decisions:
    - Categories and tags as child rows (listing_categories, listing_tags): set-intersection filters
      compile to indexed IN sub-selects on both PostgreSQL and SQLite
    - Point stored as two float columns; distance is computed in SQL (infrastructure/feed_query.py)
    - Composite indexes mirror the feed orderings (newest, rating, likes)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from placefeed.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Listing(Base):
    """Listing aggregate root: owns its category, tag and like rows."""
    __tablename__ = "listings"
    __table_args__ = (
        Index("ix_listings_created_at_id", "created_at", "id"),
        Index("ix_listings_rating_created", "average_rating", "created_at"),
        Index("ix_listings_likes_created", "likes_count", "created_at"),
        Index("ix_listings_difficulty", "difficulty"),
        Index("ix_listings_lat_lng", "latitude", "longitude"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    author_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    physical_address: Mapped[str | None] = mapped_column(String(200), nullable=True)
    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Trip metadata
    permits_required: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    permits_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    best_season: Mapped[str | None] = mapped_column(String(100), nullable=True)
    difficulty: Mapped[str | None] = mapped_column(String(20), nullable=True)
    extra_advice: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Denormalized aggregates
    average_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    ratings_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    likes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    # Relationships
    category_rows: Mapped[list["ListingCategory"]] = relationship(
        "ListingCategory", back_populates="listing",
        cascade="all, delete-orphan", lazy="selectin", passive_deletes=True,
    )
    tag_rows: Mapped[list["ListingTag"]] = relationship(
        "ListingTag", back_populates="listing",
        cascade="all, delete-orphan", lazy="selectin", passive_deletes=True,
    )

    @property
    def categories(self) -> list[str]:
        return [row.category for row in self.category_rows]

    @property
    def tags(self) -> list[str]:
        return [row.tag for row in self.tag_rows]


class ListingCategory(Base):
    __tablename__ = "listing_categories"

    listing_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("listings.id", ondelete="CASCADE"),
        primary_key=True,
    )
    category: Mapped[str] = mapped_column(String(40), primary_key=True, index=True)

    listing: Mapped["Listing"] = relationship("Listing", back_populates="category_rows")


class ListingTag(Base):
    __tablename__ = "listing_tags"

    listing_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("listings.id", ondelete="CASCADE"),
        primary_key=True,
    )
    tag: Mapped[str] = mapped_column(String(40), primary_key=True, index=True)

    listing: Mapped["Listing"] = relationship("Listing", back_populates="tag_rows")
