"""
Database context.

One ``Database`` is built per process by ``create_app`` and torn down in the
application lifespan. Nothing here is module-global: request handlers reach the
session factory through ``request.app.state.database``.

``insert_for()`` returns the dialect-specific INSERT construct so repositories
can express ON CONFLICT upserts on PostgreSQL (production) and SQLite (tests)
with the same code.
"""
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from studyflow.config import Settings


class Base(DeclarativeBase):
    pass


class Database:
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(create_async_engine(settings.database_url, echo=settings.sql_echo))

    async def create_all(self) -> None:
        """Create every mapped table. Used by tests and local bootstrapping."""
        import studyflow.models  # noqa: F401  (register mappers)

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    database: Database = request.app.state.database
    async with database.sessionmaker() as session:
        yield session


def insert_for(db: AsyncSession):
    """Pick the INSERT construct matching the dialect the session talks to."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert
