"""Database Session Manager: async connection pool, unit-of-work scope and health checks.

Invariants:
    - Every request session auto-rolls-back on exception (no partial commits leak)
    - transaction_scope commits on success and rolls back on ANY exception; domain errors re-raise
      unchanged, SQLAlchemy errors re-raise as ConsistencyError (nothing was persisted, retry is safe)
    - Connection pool uses pool_pre_ping for stale connection detection
    - SQLite connections get the math functions and FK enforcement the feed query relies on

Design Decisions:
    - Singleton db_manager initialized on startup: FastAPI lifespan manages lifecycle
    - expire_on_commit=False: prevents lazy-load issues in async context
    - transaction_scope is an explicit async context manager, not ad hoc commit calls
      (ADR: the rating ledger's unit of work must be visible in one block)
"""

import logging
import math
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy import event, text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine,
)

from placefeed.core.errors import ConsistencyError, DatabaseError

logger = logging.getLogger(__name__)


def _null_safe(fn):
    def wrapper(value):
        return None if value is None else fn(value)
    return wrapper


_SQLITE_FUNCTIONS = (
    ("radians", math.radians),
    ("sin", math.sin),
    ("cos", math.cos),
    ("asin", math.asin),
    ("sqrt", math.sqrt),
)


def install_sqlite_support(engine: AsyncEngine) -> None:
    """Register haversine math functions and enable FK cascades on every SQLite connection."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        for name, fn in _SQLITE_FUNCTIONS:
            dbapi_connection.create_function(name, 1, _null_safe(fn))
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        engine_kwargs = {"pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600,
            )
        self.engine = create_async_engine(database_url, **engine_kwargs)
        install_sqlite_support(self.engine)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}")
            raise DatabaseError("Integrity constraint violated", "commit")
        except OperationalError as e:
            await session.rollback()
            logger.error(f"DB operational error: {e}")
            raise DatabaseError("Connection or operational error", "execute")
        except DBAPIError as e:
            await session.rollback()
            logger.error(f"DB driver error: {e}")
            raise DatabaseError("Database driver error", "query")
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise DatabaseError("Database operation failed", "unknown")
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


@asynccontextmanager
async def transaction_scope(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Unit of work over one session: commit on success, rollback on any error."""
    try:
        yield db
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning(f"Transaction aborted: {e}")
        raise ConsistencyError(
            "Transaction aborted; no changes were saved, retry the operation",
        ) from e
    except BaseException:
        await db.rollback()
        raise


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs):
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
