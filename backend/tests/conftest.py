"""
Shared fixtures: in-memory database and profile factories.

Run with: cd backend && pytest -v
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("EMBEDDING_PROVIDER", "mock")
os.environ.setdefault("EXPANSION_PROVIDER", "mock")
os.environ.setdefault("EMBEDDING_CACHE_ENABLED", "false")
os.environ.setdefault("BACKGROUND_BACKEND", "asyncio")

from datetime import timedelta
from typing import Any, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from peermatch.database import Base
from peermatch.models import Profile, User
from peermatch.models.profile import utcnow


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def create_user(session_factory):
    """Factory inserting a User row; returns its id."""

    async def _create(username: str, user_id: Optional[str] = None) -> str:
        async with session_factory() as session:
            user = User(id=user_id or f"user-{username}", username=username)
            session.add(user)
            await session.commit()
            return user.id

    return _create


@pytest.fixture
def create_profile(session_factory, create_user):
    """
    Factory inserting a user and a profile.

    Slot texts default to non-empty so the profile is complete; pass
    who_you_are_text="" etc. to build incomplete profiles.
    """

    async def _create(username: str, seen_minutes_ago: int = 0, **fields: Any) -> str:
        user_id = await create_user(username)
        values = {
            "who_you_are_text": f"{username} bio",
            "who_you_are_looking_for_text": f"{username} wants",
            "last_seen": utcnow() - timedelta(minutes=seen_minutes_ago),
            "matches": [],
        }
        values.update(fields)
        async with session_factory() as session:
            session.add(Profile(user_id=user_id, **values))
            await session.commit()
        return user_id

    return _create
