"""Listing Feed: executes one feed page (plan -> compile -> fetch -> paginate -> hydrate).

Invariants:
    - Validation and cursor decoding happen in the planner, before any store access
    - At most page_size + 1 rows are fetched per call
    - Category/tag hydration runs only for the rows actually returned
    - Store errors propagate unchanged to the HTTP boundary (no silent recovery)

Design Decisions:
    - Read path uses no transaction_scope: pagination reads are lock-free snapshots
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from placefeed.core.pagination import FeedPage, paginate_rows
from placefeed.core.query_plan import (
    MAX_PAGE_SIZE, FeedQuery, ProjectStage, plan_listing_feed,
)
from placefeed.infrastructure.feed_query import (
    compile_feed_plan, hydrate_taxonomy, shape_feed_row,
)

logger = logging.getLogger(__name__)


class ListingFeedService:
    """Filtered, sorted, keyset-paginated listing feed."""

    def __init__(self, db: AsyncSession, max_page_size: int = MAX_PAGE_SIZE):
        self.db = db
        self.max_page_size = max_page_size

    async def fetch_page(self, query: FeedQuery) -> FeedPage:
        plan = plan_listing_feed(query, self.max_page_size)
        project = plan.stage(ProjectStage)

        result = await self.db.execute(compile_feed_plan(plan))
        rows = [shape_feed_row(row, project) for row in result.mappings().all()]

        page = paginate_rows(rows, plan.page_size, plan.sort_mode)
        await hydrate_taxonomy(self.db, page.data)

        logger.debug(
            f"Feed page: {len(page.data)} rows, has_next={page.has_next_page}",
            extra={"sort_mode": plan.sort_mode.value, "page_size": plan.page_size},
        )
        return page
