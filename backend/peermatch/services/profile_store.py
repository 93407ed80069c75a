"""
Profile Store - persistence for learning profiles

Thin async repository over a SQLAlchemy session. Every write is a
read-modify-write of a single profile row committed in one transaction, so
a profile never shows a half-applied edit to a concurrent matcher.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from peermatch.models import Profile, User
from peermatch.models.profile import utcnow

logger = logging.getLogger(__name__)


class ProfileNotFoundError(Exception):
    """Raised when an operation needs an existing profile and there is none."""

    def __init__(self, user_id: str):
        super().__init__(f"Profile not found for user {user_id}")
        self.user_id = user_id


class ProfileStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: str) -> Optional[Profile]:
        result = await self.session.execute(select(Profile).where(Profile.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_user(self, user_id: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str) -> Profile:
        profile = await self.get(user_id)

        if not profile:
            profile = Profile(user_id=user_id, last_seen=utcnow(), matches=[])
            self.session.add(profile)
            await self.session.commit()
            await self.session.refresh(profile)
            logger.info(f"Created profile for user {user_id}")

        return profile

    async def upsert(self, user_id: str, fields: Dict[str, Any]) -> Profile:
        """
        Apply column updates to a user's profile, creating it if needed.

        Args:
            user_id: Owning user
            fields: Column name -> new value

        Returns:
            The refreshed profile
        """
        profile = await self.get(user_id)
        if not profile:
            profile = Profile(user_id=user_id, last_seen=utcnow(), matches=[])
            self.session.add(profile)

        for column, value in fields.items():
            setattr(profile, column, value)

        await self.session.commit()
        await self.session.refresh(profile)
        return profile

    async def find_candidates(self, exclude_user_id: str) -> List[Profile]:
        """Other profiles available for chat with both required slots filled."""
        query = (
            select(Profile)
            .where(
                Profile.user_id != exclude_user_id,
                Profile.is_available_for_chat.is_(True),
                Profile.who_you_are_text != "",
                Profile.who_you_are_looking_for_text != "",
            )
            .order_by(Profile.created_at, Profile.user_id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_active(self, exclude_user_id: str, limit: int = 20) -> List[Profile]:
        """Online, available profiles excluding self, most recently seen first."""
        query = (
            select(Profile)
            .where(
                Profile.user_id != exclude_user_id,
                Profile.is_online.is_(True),
                Profile.is_available_for_chat.is_(True),
            )
            .order_by(Profile.last_seen.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_recently_active_ids(self, exclude_user_id: str, since: datetime) -> List[str]:
        query = (
            select(Profile.user_id)
            .where(
                Profile.user_id != exclude_user_id,
                Profile.is_available_for_chat.is_(True),
                Profile.last_seen >= since,
            )
            .order_by(Profile.last_seen.desc())
        )
        result = await self.session.execute(query)
        return [row[0] for row in result.all()]

    async def save_matches(self, user_id: str, matches: List[Dict[str, Any]]) -> None:
        """Overwrite the cached match list wholesale."""
        await self.session.execute(
            update(Profile).where(Profile.user_id == user_id).values(matches=matches)
        )
        await self.session.commit()

    async def update_status(
        self,
        user_id: str,
        is_online: Optional[bool] = None,
        is_available_for_chat: Optional[bool] = None,
    ) -> Profile:
        fields: Dict[str, Any] = {"last_seen": utcnow()}
        if is_online is not None:
            fields["is_online"] = is_online
        if is_available_for_chat is not None:
            fields["is_available_for_chat"] = is_available_for_chat
        return await self.upsert(user_id, fields)

    async def mark_stale_offline(self, cutoff: datetime) -> int:
        """
        Mark online profiles not seen since cutoff as offline.

        Returns:
            Number of profiles updated
        """
        result = await self.session.execute(
            update(Profile)
            .where(Profile.is_online.is_(True), Profile.last_seen < cutoff)
            .values(is_online=False)
        )
        await self.session.commit()
        return result.rowcount or 0
