"""Service test fixtures: async DB, seeded listings, fake image host, FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database with the haversine math functions
      and foreign-key cascades installed
    - get_db overridden to use the test session factory; get_image_storage overridden with
      FakeImageStorage
    - make_listing inserts rows directly (aggregates set explicitly, no service involved)

Design Decisions:
    - SQLite in-memory with StaticPool: one shared connection, fast, no external dependency
    - Concurrency tests use file_session_factory instead: a StaticPool connection cannot host
      two transactions at once
    - db_manager patched so /health/ready sees the test engine
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import placefeed.infrastructure.database as db_module
from placefeed.api.deps import get_image_storage
from placefeed.core.errors import ExternalStorageError
from placefeed.db.base import Base
from placefeed.infrastructure.database import (
    DatabaseSessionManager, get_db, install_sqlite_support,
)
from placefeed.main import app
from placefeed.models.listing import Listing, ListingCategory, ListingTag

BASE_TIME = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeImageStorage:
    """Records removals; ids listed in failing raise ExternalStorageError."""

    def __init__(self, failing: set[str] | None = None):
        self.failing = failing or set()
        self.removed: list[str] = []

    async def remove(self, external_id: str) -> None:
        if external_id in self.failing:
            raise ExternalStorageError("host unavailable", external_id)
        self.removed.append(external_id)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    install_sqlite_support(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def file_session_factory(tmp_path):
    """Sessions on a file-backed SQLite database with a real pool: one connection per session,
    so two sessions can run transactions against each other."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'placefeed.db'}")
    install_sqlite_support(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def fake_images():
    return FakeImageStorage()


@pytest.fixture
async def client(test_engine, test_session_factory, fake_images):
    """FastAPI test client with DB and image host dependencies overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_image_storage] = lambda: fake_images

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


@pytest.fixture
def make_listing(test_session_factory):
    """Factory: insert one listing and return its id.

    created_at is BASE_TIME + minutes, so newer listings get larger offsets.
    Pass session_factory to seed a different database (e.g. file_session_factory).
    """
    async def _make(
        name: str = "Listing",
        *,
        minutes: int = 0,
        latitude: float = 27.7172,
        longitude: float = 85.3240,
        average_rating: float = 0.0,
        ratings_count: int = 0,
        likes_count: int = 0,
        categories: tuple[str, ...] = ("Nature",),
        tags: tuple[str, ...] = ("Mountains",),
        difficulty: str | None = "Moderate",
        is_verified: bool = False,
        author_id: str | None = "author-1",
        images: list[dict] | None = None,
        description: str = "A place worth the trip.",
        listing_id: UUID | None = None,
        session_factory=None,
    ) -> UUID:
        listing = Listing(
            id=listing_id or uuid4(),
            author_id=author_id,
            name=name,
            description=description,
            latitude=latitude,
            longitude=longitude,
            images=images or [],
            difficulty=difficulty,
            is_verified=is_verified,
            average_rating=average_rating,
            ratings_count=ratings_count,
            likes_count=likes_count,
            created_at=BASE_TIME + timedelta(minutes=minutes),
            category_rows=[ListingCategory(category=c) for c in categories],
            tag_rows=[ListingTag(tag=t) for t in tags],
        )
        async with (session_factory or test_session_factory)() as session:
            session.add(listing)
            await session.commit()
        return listing.id

    return _make
