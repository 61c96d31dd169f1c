"""
Async Database Manager with SQLAlchemy
- Automatic database creation if missing (PostgreSQL)
- Table initialization on startup
- In-memory SQLite support for local runs and tests
"""
import logging
from importlib import import_module
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from sqlalchemy import text
import sqlalchemy
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
    AsyncEngine
)
from sqlalchemy.pool import StaticPool
import asyncpg
from detachements.core.config import settings
from detachements.models.base import Base

logger = logging.getLogger(__name__)

DB_MODELS = [
    "detachements.models.leave",
    "detachements.models.admin",
]


def _is_missing_database(error: sqlalchemy.exc.DBAPIError) -> bool:
    """True when PostgreSQL reports the target database does not exist (SQLSTATE 3D000)."""
    orig = error.orig
    if isinstance(getattr(orig, "__cause__", None), asyncpg.exceptions.InvalidCatalogNameError):
        return True
    return getattr(orig, "pgcode", None) == "3D000"


class DatabaseSessionManager:
    """Manages async database sessions with auto-creation and setup."""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None
        self.database_url: Optional[str] = None

    async def init(self, database_url: Optional[str] = None):
        """Initialize the engine and create tables, creating the database first if needed."""
        self.database_url = database_url or settings.DATABASE_URL
        try:
            self.engine = self._create_engine(self.database_url)
            try:
                await self.create_all()
            except sqlalchemy.exc.DBAPIError as e:
                if not _is_missing_database(e) or not await self._create_database():
                    raise
                await self.engine.dispose()
                self.engine = self._create_engine(self.database_url)
                await self.create_all()

            self.session_factory = async_sessionmaker(
                bind=self.engine,
                expire_on_commit=False,
                autoflush=False
            )
        except Exception as e:
            logger.error(f"❌ Database initialization failed: {e}")
            raise

    def _create_engine(self, db_url: str) -> AsyncEngine:
        if db_url.startswith("sqlite"):
            return create_async_engine(
                db_url,
                echo=settings.DATABASE_ECHO,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        return create_async_engine(
            db_url,
            pool_size=5,
            max_overflow=5,
            pool_timeout=30,
            pool_recycle=300,
            pool_pre_ping=True,
            echo=settings.DATABASE_ECHO,
        )

    async def create_all(self):
        """Register the models and create their tables."""
        for model in DB_MODELS:
            import_module(model)
        async with self.engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"📝 Tables ready: {list(Base.metadata.tables.keys())}")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Context manager for safe session handling"""
        if not self.session_factory:
            raise RuntimeError("DatabaseSessionManager not initialized")
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _create_database(self) -> bool:
        """Create the PostgreSQL database if it does not exist"""
        try:
            db_url = make_url(self.database_url)
            db_name = db_url.database

            # Connect to the default database (usually 'postgres')
            default_url = db_url.set(database="postgres")
            engine = create_async_engine(default_url, isolation_level="AUTOCOMMIT")
            async with engine.begin() as conn:
                await conn.execute(text(f'CREATE DATABASE "{db_name}"'))
            await engine.dispose()
            logger.info(f"✅ Database '{db_name}' created successfully.")
            return True
        except (asyncpg.exceptions.PostgresError, sqlalchemy.exc.SQLAlchemyError) as e:
            logger.error(f"❌ Failed to create database: {e}")
            return False

    async def close(self):
        """Cleanup connection pool"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None

# Initialize session manager
session_manager = DatabaseSessionManager()

async def aget_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions
    Usage:
    @router.get("/")
    async def endpoint(db: AsyncSession = Depends(aget_db)):
        ...
    """
    async with session_manager.get_session() as session:
        yield session
