"""
Database Infrastructure
=======================

Process-wide async engine, the session factory and the column types
shared by every bounded context. PostgreSQL through asyncpg in
deployments, SQLite through aiosqlite for local runs and tests.

One request or background job = one session = one transaction.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncGenerator, Optional

from sqlalchemy import DateTime, Float
from sqlalchemy import Enum as SAEnum
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import FunctionElement
from sqlalchemy.types import TypeDecorator
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ticketflow.config import settings


class Base(DeclarativeBase):
    """Declarative base shared by tickets, replies, SLA rules and loyalty rules."""


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamps on every backend.

    SQLite drops tzinfo on the way back; SLA arithmetic compares against
    aware datetimes, so naive values are read back as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime given to a UTC column")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def enum_column(enum_type: type[Enum]) -> SAEnum:
    """Store an enum by its wire value ('InProgress', not 'IN_PROGRESS') in a VARCHAR."""
    return SAEnum(
        enum_type,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
    )


class epoch_seconds(FunctionElement):
    """
    Seconds since 1970-01-01 UTC for a UTCDateTime column, as a float.

    Lets queries do deadline arithmetic in SQL on both backends.
    """

    name = "epoch_seconds"
    type = Float()
    inherit_cache = True


@compiles(epoch_seconds)
def _epoch_seconds_default(element, compiler, **kw):
    return "EXTRACT(EPOCH FROM %s)" % compiler.process(element.clauses, **kw)


@compiles(epoch_seconds, "sqlite")
def _epoch_seconds_sqlite(element, compiler, **kw):
    # SQLite keeps UTC text; julianday() of the Unix epoch is 2440587.5
    return "((julianday(%s) - 2440587.5) * 86400.0)" % compiler.process(element.clauses, **kw)


# Set by init_database(), cleared by close_database()
_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("Database engine not initialized; call init_database() first")
    return _engine


def init_database(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Create the engine and session factory. Called from the app lifespan;
    tests pass their own database_url.
    """
    global _engine, _session_maker

    # asyncpg spells the libpq sslmode parameter "ssl"
    database_url = (database_url or settings.database_url).replace("sslmode=", "ssl=")

    engine_kwargs = {"echo": settings.debug}
    if not database_url.startswith("sqlite"):
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )

    _engine = create_async_engine(database_url, **engine_kwargs)

    _session_maker = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,  # no implicit IO after commit under asyncio
        autoflush=False,
    )

    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Return the session factory created by init_database()."""
    if _session_maker is None:
        raise RuntimeError("Database not initialized; call init_database() first")
    return _session_maker


async def close_database() -> None:
    """Dispose of pooled connections. Safe to call when never initialized."""
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Unit of work outside a request (SLA sweep job, scripts): commit when the
    block exits normally, roll back when it raises.

        async with get_session_context() as session:
            tickets = await SQLAlchemyTicketRepository(session).list_active()
    """
    async with get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: the request's unit of work."""
    async with get_session_context() as session:
        yield session


async def create_tables() -> None:
    """Create missing tables. Local runs and tests; deployments migrate the schema."""
    # Register every model on Base.metadata before create_all
    import ticketflow.tickets.infrastructure.models  # noqa: F401
    import ticketflow.loyalty.infrastructure.models  # noqa: F401
    import ticketflow.sla.infrastructure.models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables() -> None:
    """Drop all database tables (tests only)."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
