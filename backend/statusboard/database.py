"""Database setup with SQLAlchemy async."""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from statusboard.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Create tables and seed the indexer task rows (development setups without Alembic)."""
    from statusboard.models import IndexerState, WITHDRAWAL_REQUESTS_TASK

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as session:
        if await session.get(IndexerState, WITHDRAWAL_REQUESTS_TASK) is None:
            session.add(IndexerState(task_id=WITHDRAWAL_REQUESTS_TASK, last_scanned_block=0))
            await session.commit()


async def check_db_ready() -> None:
    """
    Verify database connectivity and expected schema.

    Checks that the indexer tables exist.
    """
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

        missing = []
        for table in ("indexer_state", "withdrawal_requests"):
            exists = await conn.run_sync(
                lambda sync_conn, name=table: sync_conn.dialect.has_table(sync_conn, name)
            )
            if not exists:
                missing.append(table)

        if missing:
            raise RuntimeError(
                f"Database schema is missing tables: {', '.join(missing)} "
                "(run database init or check migrations)."
            )
