from typing import Optional
from contextlib import asynccontextmanager

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from scorebot.config import Config
from scorebot.database.models import Base, GameRecord, LedgerRow, ErrorEntry
from scorebot.utils.logger import setup_logger


def to_async_url(database_url: str) -> str:
    """Upgrade a plain sqlite URL to the aiosqlite driver"""
    if database_url.startswith('sqlite:///'):
        return database_url.replace('sqlite:///', 'sqlite+aiosqlite:///', 1)
    if database_url == 'sqlite://':
        return 'sqlite+aiosqlite://'
    return database_url


class Database:
    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.database_url = to_async_url(database_url or Config.DATABASE_URL)
        self.engine = None
        self.session_factory = None

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")

        engine_kwargs = {'echo': Config.DEBUG}
        if self.database_url in ('sqlite+aiosqlite://', 'sqlite+aiosqlite:///:memory:'):
            # An in-memory database only lives as long as its single connection
            engine_kwargs['poolclass'] = StaticPool
            engine_kwargs['connect_args'] = {'check_same_thread': False}

        self.engine = create_async_engine(self.database_url, **engine_kwargs)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Database initialized successfully")

    @asynccontextmanager
    async def get_session(self):
        """Get a database session"""
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def get_stats(self) -> dict:
        """Row counts per table, for the admin status command"""
        async with self.get_session() as session:
            total = await session.scalar(select(func.count(GameRecord.id)))
            validated = await session.scalar(
                select(func.count(GameRecord.id)).where(GameRecord.validated == True)
            )
            certified = await session.scalar(
                select(func.count(GameRecord.id)).where(GameRecord.certified == True)
            )
            ledger_rows = await session.scalar(select(func.count(LedgerRow.id)))
            errors = await session.scalar(select(func.count(ErrorEntry.id)))
        return {
            'records': total or 0,
            'validated': validated or 0,
            'certified': certified or 0,
            'ledger_rows': ledger_rows or 0,
            'errors': errors or 0,
        }

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")
