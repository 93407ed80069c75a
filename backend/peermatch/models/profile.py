"""
Profile Model - Learning profile used for peer matching

One row per user, created lazily on first access. The profile holds four
semantic slots, each stored as a group of columns:

    <slot>_text        normalized text the user typed
    <slot>_expanded    AI expansion of the text (falls back to the text)
    <slot>_embedding   vector derived from the expansion (JSON array)
    <slot>_updated_at  set whenever <slot>_text is edited

Invariants:
    - is_complete() iff who_you_are and who_you_are_looking_for are non-blank
    - an empty <slot>_text has no expansion and no embedding
    - matches is overwritten wholesale on every recomputation

Visibility is stored for callers to enforce; matching ignores it.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, String, Text, JSON, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from peermatch.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the storage convention for every profile column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Slot(str, Enum):
    """Profile slots, valued by their wire (camelCase) names."""

    WHO_YOU_ARE = "whoYouAre"
    WHO_YOU_ARE_LOOKING_FOR = "whoYouAreLookingFor"
    MENTORING_SUBJECTS = "mentoringSubjects"
    PROFESSIONAL_SERVICES = "professionalServices"

    @property
    def column_prefix(self) -> str:
        return {
            "whoYouAre": "who_you_are",
            "whoYouAreLookingFor": "who_you_are_looking_for",
            "mentoringSubjects": "mentoring_subjects",
            "professionalServices": "professional_services",
        }[self.value]

    @property
    def text_column(self) -> str:
        return f"{self.column_prefix}_text"

    @property
    def expanded_column(self) -> str:
        return f"{self.column_prefix}_expanded"

    @property
    def embedding_column(self) -> str:
        return f"{self.column_prefix}_embedding"

    @property
    def updated_at_column(self) -> str:
        return f"{self.column_prefix}_updated_at"


class Visibility(str, Enum):
    PUBLIC = "public"
    MATCHED_ONLY = "matched_only"
    PRIVATE = "private"


class Profile(Base):
    """
    Learning profile for peer matching.

    Attributes:
        user_id: Owning user (also the primary key)
        is_online: Presence flag reported by the client
        last_seen: Refreshed on every status ping
        is_available_for_chat: Whether the user can be matched/contacted
        matches: Cached list of {user_id, similarity, match_type, computed_at}
        visibility: public | matched_only | private
    """

    __tablename__ = "user_profiles"

    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    who_you_are_text = Column(Text, nullable=False, default="")
    who_you_are_expanded = Column(Text, nullable=False, default="")
    who_you_are_embedding = Column(JSON, nullable=True)  # Store as JSON array
    who_you_are_updated_at = Column(DateTime, nullable=True)

    who_you_are_looking_for_text = Column(Text, nullable=False, default="")
    who_you_are_looking_for_expanded = Column(Text, nullable=False, default="")
    who_you_are_looking_for_embedding = Column(JSON, nullable=True)
    who_you_are_looking_for_updated_at = Column(DateTime, nullable=True)

    mentoring_subjects_text = Column(Text, nullable=False, default="")
    mentoring_subjects_expanded = Column(Text, nullable=False, default="")
    mentoring_subjects_embedding = Column(JSON, nullable=True)
    mentoring_subjects_updated_at = Column(DateTime, nullable=True)

    professional_services_text = Column(Text, nullable=False, default="")
    professional_services_expanded = Column(Text, nullable=False, default="")
    professional_services_embedding = Column(JSON, nullable=True)
    professional_services_updated_at = Column(DateTime, nullable=True)

    is_online = Column(Boolean, nullable=False, default=False, index=True)
    last_seen = Column(DateTime, nullable=False, default=utcnow, index=True)
    is_available_for_chat = Column(Boolean, nullable=False, default=True, index=True)
    matches = Column(JSON, nullable=False, default=list)
    visibility = Column(String(20), nullable=False, default=Visibility.PUBLIC.value)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", lazy="joined")

    def slot_text(self, slot: Slot) -> str:
        return getattr(self, slot.text_column) or ""

    def slot_expanded(self, slot: Slot) -> str:
        return getattr(self, slot.expanded_column) or ""

    def slot_embedding(self, slot: Slot) -> Optional[List[float]]:
        return getattr(self, slot.embedding_column) or None

    def is_complete(self) -> bool:
        return bool(
            self.slot_text(Slot.WHO_YOU_ARE).strip()
            and self.slot_text(Slot.WHO_YOU_ARE_LOOKING_FOR).strip()
        )

    def get_public_profile(self) -> Dict[str, Any]:
        """Profile summary without expansions or embeddings."""
        return {
            "user_id": self.user_id,
            "who_you_are": self.slot_text(Slot.WHO_YOU_ARE),
            "who_you_are_looking_for": self.slot_text(Slot.WHO_YOU_ARE_LOOKING_FOR),
            "mentoring_subjects": self.slot_text(Slot.MENTORING_SUBJECTS),
            "professional_services": self.slot_text(Slot.PROFESSIONAL_SERVICES),
            "is_online": bool(self.is_online),
            "last_seen": self.last_seen,
            "is_available_for_chat": (
                True if self.is_available_for_chat is None else bool(self.is_available_for_chat)
            ),
            "visibility": self.visibility or Visibility.PUBLIC.value,
        }
