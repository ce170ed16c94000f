"""Initial schema: listings, taxonomy rows, likes, reviews.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "listings",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("author_id", sa.String(64), nullable=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("longitude", sa.Float, nullable=False),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("physical_address", sa.String(200), nullable=True),
        sa.Column("images", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("permits_required", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("permits_description", sa.Text, nullable=True),
        sa.Column("best_season", sa.String(100), nullable=True),
        sa.Column("difficulty", sa.String(20), nullable=True),
        sa.Column("extra_advice", sa.Text, nullable=True),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("average_rating", sa.Float, nullable=False, server_default="0"),
        sa.Column("ratings_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("likes_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_listings_created_at_id", "listings", ["created_at", "id"])
    op.create_index("ix_listings_rating_created", "listings", ["average_rating", "created_at"])
    op.create_index("ix_listings_likes_created", "listings", ["likes_count", "created_at"])
    op.create_index("ix_listings_difficulty", "listings", ["difficulty"])
    op.create_index("ix_listings_lat_lng", "listings", ["latitude", "longitude"])

    op.create_table(
        "listing_categories",
        sa.Column(
            "listing_id", UUID(as_uuid=True),
            sa.ForeignKey("listings.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("category", sa.String(40), primary_key=True),
    )
    op.create_index("ix_listing_categories_category", "listing_categories", ["category"])

    op.create_table(
        "listing_tags",
        sa.Column(
            "listing_id", UUID(as_uuid=True),
            sa.ForeignKey("listings.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("tag", sa.String(40), primary_key=True),
    )
    op.create_index("ix_listing_tags_tag", "listing_tags", ["tag"])

    op.create_table(
        "listing_likes",
        sa.Column(
            "listing_id", UUID(as_uuid=True),
            sa.ForeignKey("listings.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "reviews",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "listing_id", UUID(as_uuid=True),
            sa.ForeignKey("listings.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("reviewer_name", sa.String(100), nullable=False),
        sa.Column("reviewer_id", sa.String(64), nullable=True),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("message", sa.Text, nullable=False, server_default=""),
        sa.Column("is_public", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )
    op.create_index("ix_reviews_listing_public", "reviews", ["listing_id", "is_public"])


def downgrade() -> None:
    op.drop_table("reviews")
    op.drop_table("listing_likes")
    op.drop_table("listing_tags")
    op.drop_table("listing_categories")
    op.drop_table("listings")
