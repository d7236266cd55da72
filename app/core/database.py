"""
Async database layer: the credential store's engine, sessions and base model.

The engine is created lazily from `settings.database_url` so tests can point
the app at SQLite before first use. PostgreSQL (asyncpg) gets a real pool;
SQLite (aiosqlite) gets `NullPool`, which keeps connections from outliving
the event loop that opened them.
"""
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncGenerator

from sqlalchemy import MetaData, DateTime, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
    AsyncEngine
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import NullPool

from app.core.config import settings


# Constraint names must match migrations/versions
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}


class Base(DeclarativeBase):
    """Declarative base: UUID primary key plus audit timestamps."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    # Generated client-side so SQLite and PostgreSQL behave alike
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )


def _engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        return {"poolclass": NullPool, "connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


class _DatabaseState:
    engine: AsyncEngine | None = None
    session_factory: async_sessionmaker[AsyncSession] | None = None


_state = _DatabaseState()


def get_engine() -> AsyncEngine:
    """Get or create the process-wide engine."""
    if _state.engine is None:
        _state.engine = create_async_engine(
            settings.database_url,
            echo=settings.db_echo,
            **_engine_options(settings.database_url)
        )
    return _state.engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory bound to `get_engine()`."""
    if _state.session_factory is None:
        # Objects stay readable after commit; views are built from them
        _state.session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False
        )
    return _state.session_factory


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Unit of work outside request handling: commit on success, roll back on error.

    Usage:
        async with get_db_context() as db:
            user = await UserRepository(db).get_by_email(email)
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency: one session per request, shared by every dependency
    of that request.
    """
    async with get_db_context() as session:
        yield session


async def init_db() -> None:
    """Create missing tables. Production schemas are managed by Alembic."""
    from app.models import user, profile  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine; the next use creates a fresh one."""
    if _state.engine is not None:
        await _state.engine.dispose()
    _state.engine = None
    _state.session_factory = None


async def check_db_connection() -> bool:
    """Health check for the credential store."""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError):
        return False
