"""Database engine, session factory and transaction helpers"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from reservas_api.config import settings


class Base(DeclarativeBase):
    """Declarative base for all models"""


engine = create_async_engine(
    settings.database_url,
    echo=settings.api_debug,
    pool_pre_ping=True,
)

SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped database session"""
    async with SessionLocal() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    """Session factory for work that outlives the request (background tasks)"""
    return SessionLocal


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a block of writes as one transaction.

    Commits when the block exits cleanly and rolls back on any exception,
    so a multi-row mutation is never left half applied.
    """
    try:
        yield db
        await db.commit()
    except BaseException:
        await db.rollback()
        raise
