"""Listing Schemas: Pydantic models with field-level validation for the listing API boundary.

Invariants:
    - Wire names are camelCase; Python attributes are snake_case (populate_by_name)
    - ListingCreate requires at least one category and one tag, closed enumerations only
    - Coordinates validated here: latitude in [-90, 90], longitude in [-180, 180]

Design Decisions:
    - Images arrive as already-uploaded descriptors {url, externalId, format}: upload itself
      belongs to the client's image host integration
    - field_validator for side-effect-free transforms (strip), as in the session schemas
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from placefeed.core.domain_types import Category, Difficulty, Tag


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImageDescriptor(CamelModel):
    """Opaque image reference returned by the image host."""
    url: str = Field(min_length=1, max_length=2000)
    external_id: str = Field(min_length=1, max_length=255)
    format: str | None = Field(None, max_length=20)


class ListingCreate(CamelModel):
    name: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=10, max_length=5000)
    categories: list[Category] = Field(min_length=1)
    tags: list[Tag] = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    permits_required: bool = False
    permits_description: str | None = Field(None, max_length=1000)
    best_season: str | None = Field(None, max_length=100)
    difficulty: Difficulty
    extra_advice: str | None = Field(None, max_length=2000)
    physical_address: str | None = Field(None, max_length=200)
    images: list[ImageDescriptor] = Field(default_factory=list, max_length=50)

    @field_validator("name", "description")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty or whitespace")
        return v


class TipsUpdate(CamelModel):
    permits_required: bool = False
    permits_description: str | None = Field(None, max_length=1000)
    best_season: str | None = Field(None, max_length=100)
    difficulty: Difficulty
    extra_advice: str | None = Field(None, max_length=2000)


class DescriptionUpdate(CamelModel):
    description: str = Field(min_length=10, max_length=5000)


class TitleUpdate(CamelModel):
    title: str = Field(min_length=3, max_length=100)


class LocationUpdate(CamelModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class TagsCategoriesUpdate(CamelModel):
    categories: list[Category] = Field(min_length=1)
    tags: list[Tag] = Field(min_length=1)


class VerifyUpdate(CamelModel):
    is_verified: bool = True


class ImagesAdd(CamelModel):
    """Descriptors already uploaded by the client, appended in order."""
    images: list[ImageDescriptor] = Field(min_length=1, max_length=50)


class ImageRemove(CamelModel):
    external_id: str = Field(min_length=1, max_length=255)
