"""Resilient Image Storage: removes listing images from Cloudinary with retry and error mapping.

Invariants:
    - Rate limits and 5xx-class failures (RateLimited, GeneralError): exponential backoff with
      jitter, at most max_retries retries
    - Client errors (BadRequest, NotAllowed, AuthorizationRequired): immediate failure, no retry
    - A "not found" destroy result counts as removed
    - All failures mapped to ExternalStorageError (core/errors.py)

Design Decisions:
    - The cloudinary SDK is synchronous; calls run in a worker thread so the event loop never blocks
    - ±25% jitter on backoff
"""

import asyncio
import logging
import random

import cloudinary
import cloudinary.uploader
from cloudinary import exceptions as cloudinary_errors

from placefeed.core.errors import ExternalStorageError

logger = logging.getLogger(__name__)

_REMOVED_RESULTS = frozenset({"ok", "not found"})
_TRANSIENT_ERRORS = (cloudinary_errors.RateLimited, cloudinary_errors.GeneralError)


class CloudinaryImageStorage:
    """ImageStorage implementation backed by the Cloudinary upload API."""

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        max_retries: int = 2,
        base_delay_ms: int = 250,
        max_delay_ms: int = 5_000,
    ):
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    async def remove(self, external_id: str) -> None:
        """Destroy one image by its Cloudinary public_id."""
        if not external_id:
            return
        for attempt in range(self.max_retries + 1):
            try:
                response = await asyncio.to_thread(
                    cloudinary.uploader.destroy, external_id, resource_type="image",
                )
            except _TRANSIENT_ERRORS as e:
                if attempt >= self.max_retries:
                    raise ExternalStorageError(str(e), external_id)
                await self._backoff(attempt, external_id, e)
                continue
            except cloudinary_errors.Error as e:
                raise ExternalStorageError(str(e), external_id)

            result = (response or {}).get("result")
            if result not in _REMOVED_RESULTS:
                raise ExternalStorageError(f"unexpected destroy result '{result}'", external_id)
            return

    async def _backoff(self, attempt: int, external_id: str, error: Exception) -> None:
        delay = min(self.base_delay_ms * (2 ** attempt), self.max_delay_ms)
        jittered = delay * random.uniform(0.75, 1.25)
        logger.warning(
            f"Image removal retry in {jittered:.0f}ms: {error}",
            extra={"external_id": external_id, "attempt": attempt + 1},
        )
        await asyncio.sleep(jittered / 1000)
