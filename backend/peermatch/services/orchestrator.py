"""
Profile Update Orchestrator

Pipeline for every edited slot:

    normalize -> expand (LLM) -> embed expansion -> persist -> enqueue matches

Slots are processed concurrently and independently. A failing slot never
affects the others, and a provider failure never fails the update:

    expanded   expansion and embedding both succeeded
    fallback   expansion or embedding failed (or timed out); the normalized
               text is stored as the expansion and embedded instead
    failed     the fallback embedding failed too; the slot is stored
               without an embedding
    cleared    the slot was emptied; its expansion and embedding are removed

All slot writes land in a single profile write. Edits of the same user are
serialized so the last request to arrive is the one persisted.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from peermatch.middleware.metrics import record_slot_outcome
from peermatch.models import Profile, Slot
from peermatch.models.profile import utcnow
from peermatch.services.embedding_providers import EmbeddingError, EmbeddingProvider
from peermatch.services.match_queue import MatchQueue
from peermatch.services.profile_store import ProfileNotFoundError, ProfileStore
from peermatch.services.text_expander import TextExpander
from peermatch.services.text_normalizer import normalize

logger = logging.getLogger(__name__)


class SlotStatus(str, Enum):
    EXPANDED = "expanded"
    FALLBACK = "fallback"
    FAILED = "failed"
    CLEARED = "cleared"


@dataclass
class SlotOutcome:
    slot: Slot
    status: SlotStatus
    text: str = ""
    expanded: str = ""
    embedding: Optional[List[float]] = None
    error: Optional[str] = None


@dataclass
class ProfileUpdateResult:
    profile: Profile
    outcomes: Dict[Slot, SlotOutcome] = field(default_factory=dict)

    @property
    def degraded(self) -> bool:
        return any(
            o.status in (SlotStatus.FALLBACK, SlotStatus.FAILED)
            for o in self.outcomes.values()
        )


class ProfileUpdateOrchestrator:
    """
    Coordinates profile edits and reprocessing.

    Attributes:
        session_factory: async_sessionmaker producing store sessions
        expander: Slot-aware text expander
        embedder: Embedding provider
        match_queue: Receives the post-save match recomputation
        timeout: Seconds allowed for each provider call
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        expander: TextExpander,
        embedder: EmbeddingProvider,
        match_queue: MatchQueue,
        timeout: float = 20.0,
    ):
        self.session_factory = session_factory
        self.expander = expander
        self.embedder = embedder
        self.match_queue = match_queue
        self.timeout = timeout
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _user_lock(self, user_id: str):
        """Serialize pipeline runs per user. A lock is dropped once nobody holds or waits on it."""
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]
                del self._locks[user_id]

    async def _embed(self, text: str) -> List[float]:
        embedding = await asyncio.wait_for(self.embedder.embed(text), timeout=self.timeout)
        if not embedding:
            raise EmbeddingError("Provider returned no embedding")
        return embedding

    async def _process_slot(self, slot: Slot, text: str) -> SlotOutcome:
        """Expand and embed one slot's normalized text. Never raises."""
        if not text:
            return SlotOutcome(slot=slot, status=SlotStatus.CLEARED)

        try:
            expanded = await asyncio.wait_for(
                self.expander.expand(text, slot), timeout=self.timeout
            )
            embedding = await self._embed(expanded)
            return SlotOutcome(
                slot=slot,
                status=SlotStatus.EXPANDED,
                text=text,
                expanded=expanded,
                embedding=embedding,
            )
        except Exception as e:
            reason = "timed out" if isinstance(e, asyncio.TimeoutError) else str(e)
            logger.warning(f"Expansion failed for {slot.value}, falling back to original text: {reason}")
            error = reason

        try:
            embedding = await self._embed(text)
            status = SlotStatus.FALLBACK
        except Exception as e:
            logger.warning(f"Fallback embedding failed for {slot.value}: {e!r}")
            embedding = None
            status = SlotStatus.FAILED

        return SlotOutcome(
            slot=slot,
            status=status,
            text=text,
            expanded=text,
            embedding=embedding,
            error=error,
        )

    async def _process_slots(self, texts: Mapping[Slot, str]) -> Dict[Slot, SlotOutcome]:
        slots = list(texts.keys())
        results = await asyncio.gather(*(self._process_slot(s, texts[s]) for s in slots))
        outcomes = dict(zip(slots, results))
        for outcome in results:
            record_slot_outcome(outcome.status.value)
        return outcomes

    async def apply_profile_edits(
        self,
        user_id: str,
        edits: Mapping[Slot, Optional[str]],
        visibility: Optional[str] = None,
    ) -> ProfileUpdateResult:
        """
        Apply slot edits to a user's profile, creating it if needed.

        Args:
            user_id: Profile owner
            edits: Slot -> new raw text; slots absent from the mapping are
                left untouched, "" or None clears the slot
            visibility: Optional new visibility value

        Returns:
            ProfileUpdateResult with the saved profile and per-slot outcomes
        """
        normalized = {slot: normalize(text) for slot, text in edits.items()}
        logger.info(f"Processing {len(normalized)} profile fields for user {user_id}")

        async with self._user_lock(user_id):
            outcomes = await self._process_slots(normalized)

            now = utcnow()
            fields: Dict[str, Any] = {}
            for slot, outcome in outcomes.items():
                fields[slot.text_column] = outcome.text
                fields[slot.expanded_column] = outcome.expanded
                fields[slot.embedding_column] = outcome.embedding
                fields[slot.updated_at_column] = now
            if visibility is not None:
                fields["visibility"] = visibility

            async with self.session_factory() as session:
                profile = await ProfileStore(session).upsert(user_id, fields)

        self.match_queue.enqueue_user_update(user_id)
        return ProfileUpdateResult(profile=profile, outcomes=outcomes)

    async def reprocess_profile(self, user_id: str) -> ProfileUpdateResult:
        """
        Re-expand and re-embed every non-empty slot of an existing profile.

        Stored texts and slot edit timestamps are left as they are.

        Raises:
            ProfileNotFoundError: The user has no profile
        """
        async with self._user_lock(user_id):
            async with self.session_factory() as session:
                existing = await ProfileStore(session).get(user_id)
                if not existing:
                    raise ProfileNotFoundError(user_id)
                texts = {
                    slot: existing.slot_text(slot)
                    for slot in Slot
                    if existing.slot_text(slot).strip()
                }

            logger.info(f"Re-processing {len(texts)} profile fields for user {user_id}")
            outcomes = await self._process_slots(texts)

            fields: Dict[str, Any] = {}
            for slot, outcome in outcomes.items():
                fields[slot.expanded_column] = outcome.expanded
                fields[slot.embedding_column] = outcome.embedding

            async with self.session_factory() as session:
                profile = await ProfileStore(session).upsert(user_id, fields)

        self.match_queue.enqueue_user_update(user_id)
        return ProfileUpdateResult(profile=profile, outcomes=outcomes)


_orchestrator: Optional[ProfileUpdateOrchestrator] = None


def get_orchestrator() -> ProfileUpdateOrchestrator:
    """Shared orchestrator wired to the configured providers and queue."""
    global _orchestrator
    if _orchestrator is None:
        from peermatch.config import get_settings
        from peermatch.database import async_session
        from peermatch.services.embedding_providers import get_default_embedding_provider
        from peermatch.services.match_queue import get_match_queue
        from peermatch.services.text_expander import get_default_text_expander

        _orchestrator = ProfileUpdateOrchestrator(
            session_factory=async_session,
            expander=get_default_text_expander(),
            embedder=get_default_embedding_provider(),
            match_queue=get_match_queue(),
            timeout=get_settings().provider_timeout_seconds,
        )
    return _orchestrator
