"""Keyset Pagination: page slicing and next-cursor derivation over an over-fetched row list.

Invariants:
    - has_next_page == len(rows) > page_size
    - data holds at most page_size rows; the sentinel row (index page_size) is never returned
    - next_cursor is derived from the LAST row of the truncated page, never from the sentinel
    - next_cursor is None whenever has_next_page is False

Design Decisions:
    - Pure function over already-fetched rows: the +1 over-fetch is a query-shape trick,
      no count query and no offset
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from placefeed.core.cursor_codec import FeedCursor
from placefeed.core.domain_types import SortMode


@dataclass
class FeedPage:
    data: list[dict[str, Any]] = field(default_factory=list)
    next_cursor: str | None = None
    has_next_page: bool = False

    def to_response(self) -> dict:
        return {
            "data": self.data,
            "nextCursor": self.next_cursor,
            "hasNextPage": self.has_next_page,
        }


def paginate_rows(
    rows: Sequence[Mapping[str, Any]], page_size: int, sort_mode: SortMode,
) -> FeedPage:
    """Truncate an over-fetched result and compute the continuation cursor."""
    has_next_page = len(rows) > page_size
    data = [dict(r) for r in rows[:page_size]]

    next_cursor = None
    if has_next_page and data:
        next_cursor = FeedCursor.from_row(data[-1], sort_mode).encode()

    return FeedPage(data=data, next_cursor=next_cursor, has_next_page=has_next_page)
