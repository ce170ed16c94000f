"""Boundary Protocols: contracts between core and shell.

Invariants:
    - Core NEVER imports from shell; dependency arrows point inward only
    - External collaborators are reached through Protocol types injected by the shell

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
"""

from typing import Protocol


class ImageStorage(Protocol):
    """External image host. Images are stored and returned opaquely as {url, externalId, format}."""
    async def remove(self, external_id: str) -> None:
        """Delete one image. Raises ExternalStorageError on failure."""
        ...
