"""
Persistence - Database engine and session management.

============================================================
RESPONSIBILITY
============================================================
Owns the SQLAlchemy async engine and session factory for the tracker.

- One Database instance per process, injected where needed
- Explicit transaction boundaries (commit or roll back)
- Table creation at startup

Every database round trip is awaited on the caller's event loop.
============================================================
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ..config import DatabaseConfig
from ..exceptions import PersistenceError
from .models import Base


logger = logging.getLogger(__name__)


# Async driver used when a URL names only the dialect
ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "postgres://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


def _redact(url: str) -> str:
    """Drop credentials from a database URL for logging."""
    return url.split("@")[-1]


def to_async_url(url: str) -> str:
    """
    Point a plain database URL at its async driver.

    "postgresql://host/db" -> "postgresql+asyncpg://host/db"
    "sqlite:///:memory:"   -> "sqlite+aiosqlite:///:memory:"
    URLs that already name a driver are returned unchanged.
    """
    for prefix, async_prefix in ASYNC_DRIVERS.items():
        if url.startswith(prefix):
            return async_prefix + url[len(prefix):]
    return url


class Database:
    """
    Async engine + session factory wrapper.

    Usage:
        database = Database(DatabaseConfig(url="sqlite:///:memory:"))
        await database.create_all_tables()

        async with database.transaction_scope() as session:
            session.add(record)
    """

    def __init__(
        self,
        config: Optional[DatabaseConfig] = None,
        engine: Optional[AsyncEngine] = None,
    ) -> None:
        self.config = config or DatabaseConfig()
        self._engine = engine or self._create_engine()
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False,
        )

    def _create_engine(self) -> AsyncEngine:
        """
        Create SQLAlchemy async engine.

        SQLite (tests, local runs) shares one connection so in-memory
        databases survive across sessions; everything else gets a pool.
        """
        url = to_async_url(self.config.url)
        logger.info(f"Creating database engine for: {_redact(url)}")

        if url.startswith("sqlite"):
            engine = create_async_engine(
                url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
                echo=self.config.echo,
            )
        else:
            engine = create_async_engine(
                url,
                pool_size=self.config.pool_size,
                max_overflow=self.config.max_overflow,
                pool_timeout=self.config.pool_timeout,
                pool_recycle=self.config.pool_recycle,
                pool_pre_ping=True,
                echo=self.config.echo,
            )

        @event.listens_for(engine.sync_engine, "connect")
        def on_connect(dbapi_conn, connection_record):
            logger.debug("Database connection established")

        return engine

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    def get_session(self) -> AsyncSession:
        """
        Get a new session.

        Caller is responsible for closing; prefer transaction_scope().
        """
        return self._session_factory()

    @asynccontextmanager
    async def transaction_scope(
        self,
        operation: str = "transaction",
    ) -> AsyncIterator[AsyncSession]:
        """
        Async context manager for explicit transaction boundaries.

        Commits only if no exception occurs, rolls back on any exception.
        SQLAlchemy errors are re-raised as PersistenceError tagged with
        the operation name.
        """
        session = self.get_session()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Database error in {operation}, rolling back: {e}")
            await session.rollback()
            raise PersistenceError(
                f"{operation} failed: {e}",
                operation=operation,
                original_error=e,
            ) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def verify_connection(self) -> bool:
        """
        Verify the database is reachable.

        Raises:
            PersistenceError if the connection fails
        """
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Database connection verified successfully")
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database connection failed: {e}")
            raise PersistenceError(
                f"Cannot connect to database: {e}",
                operation="connect",
                original_error=e,
            ) from e

    async def create_all_tables(self) -> None:
        """Create tracked_wallets and transactions if missing."""
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}")
            raise PersistenceError(
                f"Table creation failed: {e}",
                operation="create_tables",
                original_error=e,
            ) from e

    async def initialize(self) -> None:
        """Startup sequence: verify connection, then create tables."""
        await self.verify_connection()
        await self.create_all_tables()

    async def dispose(self) -> None:
        await self._engine.dispose()
