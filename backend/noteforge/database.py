"""
NoteForge Backend - Database Handle
====================================

What:  Async SQLAlchemy engine plus session factory, wrapped in one object.
How:   `Database(url, ...)` builds the engine with connection pooling and an
       `async_sessionmaker`. The handle is constructed in the application
       lifespan (see dependencies.build_services) and passed to the services
       that need it, so tests can point a fresh handle at SQLite.
Who:   ContentStore, the health route, Alembic's env.py (for metadata).

Connection Pooling Strategy (PostgreSQL):
    pool_size:        Persistent connections for normal load
    max_overflow:     Temporary connections for traffic spikes
    pool_pre_ping:    Validates connections before use
    pool_recycle=3600: Recycles connections every hour

SQLite URLs (tests, local hacking) skip the pool arguments, which the SQLite
dialects do not accept.
"""

from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares one metadata object, which Alembic reads for autogenerate.
    """
    pass


class Database:
    """Owns one async engine and the session factory bound to it."""

    def __init__(
        self,
        url: str,
        pool_size: int = 10,
        max_overflow: int = 10,
        pool_pre_ping: bool = True,
        echo: bool = False,
        engine: Optional[AsyncEngine] = None,
    ):
        self.url = url
        if engine is None:
            kwargs = {"echo": echo}
            if not make_url(url).get_backend_name().startswith("sqlite"):
                kwargs.update(
                    pool_size=pool_size,
                    max_overflow=max_overflow,
                    pool_pre_ping=pool_pre_ping,
                    pool_recycle=3600,
                )
            engine = create_async_engine(url, **kwargs)
        self.engine = engine

        # expire_on_commit=False: rows stay readable after the commit that
        # closed their transaction.
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    async def create_all(self) -> None:
        """Creates every mapped table. Used by tests; production uses Alembic."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> None:
        """Runs SELECT 1; raises whatever the driver raises."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        """Closes all pooled connections. Called during application shutdown."""
        await self.engine.dispose()
