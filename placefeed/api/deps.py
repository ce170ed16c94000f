"""Request Dependencies: caller identity and collaborator wiring for route handlers.

Invariants:
    - Identity comes from the upstream auth gateway headers; this service never authenticates
    - Missing X-User-Id -> anonymous Caller (user_id None, not admin)
    - One ImageStorage client per process, built from settings
"""

from functools import lru_cache

from fastapi import Header

from placefeed.config import get_settings
from placefeed.core.repository_protocols import ImageStorage
from placefeed.infrastructure.image_storage import CloudinaryImageStorage
from placefeed.services.listing_catalogue import Caller


async def get_caller(
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
) -> Caller:
    user_id = x_user_id.strip() if x_user_id else None
    return Caller(
        user_id=user_id or None,
        is_admin=bool(user_id) and (x_user_role or "").lower() == "admin",
    )


@lru_cache
def _image_storage() -> CloudinaryImageStorage:
    settings = get_settings()
    return CloudinaryImageStorage(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
        max_retries=settings.image_storage_max_retries,
        base_delay_ms=settings.image_storage_base_delay_ms,
    )


def get_image_storage() -> ImageStorage:
    return _image_storage()
