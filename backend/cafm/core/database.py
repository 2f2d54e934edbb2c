"""
Database engine, session factory and declarative base.

Work order writes are committed by WorkOrderRepository.save, one unit of
work per service call, so the request-scoped session here only rolls back.
"""
from typing import AsyncGenerator, Optional
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import MetaData, event

from cafm.core.config import get_settings

settings = get_settings()

# Naming convention for constraints
metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    metadata = metadata


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    SQLite (aiosqlite) for development and tests, PostgreSQL (asyncpg) otherwise.
    SQLite connections get foreign keys switched on; PostgreSQL gets the
    configured pool.
    """
    if url.startswith("sqlite"):
        sqlite_engine = create_async_engine(url, echo=echo, connect_args={"check_same_thread": False})
        event.listen(sqlite_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return sqlite_engine

    return create_async_engine(
        url,
        echo=echo,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; anything left uncommitted is rolled back."""
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """Create the work order tables on the given engine (the app engine by default)."""
    # Models register themselves on Base.metadata when imported
    from cafm.models import (
        company,  # noqa: F401
        user,  # noqa: F401
        report,  # noqa: F401
        work_order,  # noqa: F401
        scheduler_control,  # noqa: F401
    )

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
