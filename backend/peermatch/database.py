from pathlib import Path
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool
from peermatch.config import get_settings

settings = get_settings()

# Convert sqlite:/// to sqlite+aiosqlite:///
database_url = settings.database_url.replace("sqlite:///", "sqlite+aiosqlite:///")

engine = create_async_engine(database_url, echo=False)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db():
    async with async_session() as session:
        yield session


def create_worker_session_factory() -> async_sessionmaker:
    """
    Session factory for Celery workers.

    Each task runs inside its own event loop, so connections must not be
    pooled across tasks.

    Returns:
        async_sessionmaker bound to a NullPool engine
    """
    worker_engine = create_async_engine(database_url, echo=False, poolclass=NullPool)
    return async_sessionmaker(worker_engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    if database_url.startswith("sqlite+aiosqlite:///") and ":memory:" not in database_url:
        db_path = Path(database_url.replace("sqlite+aiosqlite:///", ""))
        db_path.parent.mkdir(parents=True, exist_ok=True)

    # Register models on Base.metadata
    import peermatch.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
