"""
Users database (async SQLAlchemy)

Only the users table lives here; work items are in the JSON partitions.
The engine is built on first use so that tests can point DATABASE_URL at
a temporary file before anything connects.
"""

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from app.core.config import settings


class Base(DeclarativeBase):
    pass


class _Database:
    def __init__(self) -> None:
        self.engine: Optional[AsyncEngine] = None
        self.sessions: Optional[async_sessionmaker[AsyncSession]] = None

    def connect(self) -> async_sessionmaker[AsyncSession]:
        if self.sessions is None:
            url = settings.DATABASE_URL
            if url.startswith("sqlite:///"):
                url = "sqlite+aiosqlite:///" + url[len("sqlite:///"):]

            if url.startswith("sqlite"):
                # each session opens its own sqlite connection
                self.engine = create_async_engine(url, echo=settings.DB_ECHO, poolclass=NullPool)
            else:
                self.engine = create_async_engine(url, echo=settings.DB_ECHO, pool_pre_ping=True)
            self.sessions = async_sessionmaker(self.engine, expire_on_commit=False)
        return self.sessions

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
        self.engine = None
        self.sessions = None


_db = _Database()


def get_session_local() -> async_sessionmaker[AsyncSession]:
    return _db.connect()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed when the handler succeeds"""
    async with get_session_local()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables"""
    get_session_local()
    async with _db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await _db.dispose()
