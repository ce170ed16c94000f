"""ORM Models: SQLAlchemy declarative models for listings and reviews.

Invariants:
    - All models inherit from Base (db/base.py)
    - Listing is the aggregate root; category, tag, like and review rows reference listings.id

Design Decisions:
    - One file per entity (listing.py keeps its two taxonomy tables beside it)
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from placefeed.models.listing import Listing, ListingCategory, ListingTag  # noqa: F401
from placefeed.models.listing_like import ListingLike  # noqa: F401
from placefeed.models.review import Review  # noqa: F401
