"""Review Schemas: validation for review create/update and the public review shape.

Invariants:
    - rating is an integer in [1, 5]
    - ReviewUpdate carries at least one of rating, message
"""

from datetime import datetime
from uuid import UUID

from pydantic import ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from placefeed.core.domain_types import MAX_RATING, MIN_RATING
from placefeed.schemas.listing import CamelModel


class ReviewCreate(CamelModel):
    reviewer_name: str = Field(min_length=1, max_length=100)
    rating: int = Field(ge=MIN_RATING, le=MAX_RATING)
    message: str = Field("", max_length=2000)


class ReviewUpdate(CamelModel):
    rating: int | None = Field(None, ge=MIN_RATING, le=MAX_RATING)
    message: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def check_has_change(self) -> "ReviewUpdate":
        if self.rating is None and self.message is None:
            raise ValueError("rating or message is required")
        return self


class ReviewResponse(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True,
    )

    id: UUID
    listing_id: UUID
    reviewer_name: str
    reviewer_id: str | None = None
    rating: int
    message: str
    created_at: datetime
