"""
Peer Matching Service - Embedding-Based Peer Compatibility

Scores a subject profile against every eligible peer using four cosine
similarities between slot embeddings:

    seeking   = subject.who_you_are_looking_for  vs  peer.who_you_are
    offering  = subject.who_you_are              vs  peer.who_you_are_looking_for
    subjects  = subject.mentoring_subjects       vs  peer.mentoring_subjects
    services  = subject.professional_services    vs  peer.professional_services

Classification (first rule wins for the match type):
    1. seeking and offering both above the mutual threshold -> mutual,
       score = mean of the two
    2. seeking > 0 -> seeking, score = seeking, even when offering is higher
    3. offering > 0 -> offering, score = offering
    4. otherwise -> general, score = 0
Subjects/services above the secondary threshold can still raise the score.

Peers scoring above the similarity threshold are kept, sorted by score
(stable, so ties keep discovery order) and truncated to the max results.

The thresholds are empirical tuning values with no derivation behind them;
they live in MatchThresholds and can be overridden from settings.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from peermatch.middleware.metrics import record_match_score_latency, record_peer_recalc_failure
from peermatch.models import Profile, Slot
from peermatch.models.profile import utcnow
from peermatch.services.match_queue import MatchQueue
from peermatch.services.profile_store import ProfileStore
from peermatch.services.similarity import cosine_similarity

logger = logging.getLogger(__name__)

MAX_REASONS = 3


@dataclass(frozen=True)
class MatchThresholds:
    similarity: float = 0.6
    max_results: int = 10
    mutual: float = 0.75
    secondary: float = 0.6
    good_fit: float = 0.7
    excellent_fit: float = 0.8

    @classmethod
    def from_settings(cls, settings) -> "MatchThresholds":
        return cls(
            similarity=settings.match_similarity_threshold,
            max_results=settings.match_max_results,
            mutual=settings.match_mutual_threshold,
            secondary=settings.match_secondary_threshold,
            good_fit=settings.match_good_fit_threshold,
            excellent_fit=settings.match_excellent_fit_threshold,
        )


DEFAULT_THRESHOLDS = MatchThresholds()


class MatchType(str, Enum):
    MUTUAL = "mutual"
    SEEKING = "seeking"
    OFFERING = "offering"
    GENERAL = "general"


@dataclass
class PairScore:
    """Outcome of scoring one subject/candidate pair."""
    similarity: float
    match_type: MatchType
    reasons: List[str]
    seeking: float = 0.0
    offering: float = 0.0
    subjects: float = 0.0
    services: float = 0.0


@dataclass
class MatchResult:
    """A ranked peer match, as returned to the subject."""
    user_id: str
    username: Optional[str]
    profile: Dict[str, Any]
    similarity: float
    match_type: MatchType
    reasons: List[str] = field(default_factory=list)

    def to_cache_entry(self, computed_at) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "similarity": self.similarity,
            "match_type": self.match_type.value,
            "computed_at": computed_at.isoformat(),
        }


def score_pair(
    subject: Profile,
    candidate: Profile,
    thresholds: MatchThresholds = DEFAULT_THRESHOLDS,
) -> PairScore:
    """
    Calculate the match score of candidate for subject.

    Args:
        subject: Profile the matches are computed for
        candidate: Peer profile being evaluated
        thresholds: Tuning constants

    Returns:
        PairScore with final similarity, match type and up to 3 reasons

    Example:
        >>> score = score_pair(subject, candidate)
        >>> score.match_type, score.similarity
        (<MatchType.SEEKING: 'seeking'>, 0.9)
    """
    seeking = cosine_similarity(
        subject.slot_embedding(Slot.WHO_YOU_ARE_LOOKING_FOR),
        candidate.slot_embedding(Slot.WHO_YOU_ARE),
    )
    offering = cosine_similarity(
        subject.slot_embedding(Slot.WHO_YOU_ARE),
        candidate.slot_embedding(Slot.WHO_YOU_ARE_LOOKING_FOR),
    )
    subjects = cosine_similarity(
        subject.slot_embedding(Slot.MENTORING_SUBJECTS),
        candidate.slot_embedding(Slot.MENTORING_SUBJECTS),
    )
    services = cosine_similarity(
        subject.slot_embedding(Slot.PROFESSIONAL_SERVICES),
        candidate.slot_embedding(Slot.PROFESSIONAL_SERVICES),
    )

    logger.debug(
        f"Matching scores {subject.user_id}->{candidate.user_id} - "
        f"Seeking: {seeking:.3f}, Offering: {offering:.3f}, "
        f"Subjects: {subjects:.3f}, Services: {services:.3f}"
    )

    reasons: List[str] = []
    match_type = MatchType.GENERAL
    score = 0.0

    if seeking > thresholds.mutual and offering > thresholds.mutual:
        match_type = MatchType.MUTUAL
        score = (seeking + offering) / 2
        reasons.append("Strong mutual compatibility")
    elif seeking > score:
        match_type = MatchType.SEEKING
        score = seeking
        reasons.append("They match what you're looking for")
    elif offering > score:
        match_type = MatchType.OFFERING
        score = offering
        reasons.append("You match what they're looking for")

    if subjects > thresholds.secondary:
        score = max(score, subjects)
        reasons.append("Overlapping expertise areas")

    if services > thresholds.secondary:
        score = max(score, services)
        reasons.append("Similar service offerings")

    if seeking > thresholds.excellent_fit:
        reasons.append("Excellent fit for your learning goals")
    elif seeking > thresholds.good_fit:
        reasons.append("Good match for your needs")

    if offering > thresholds.excellent_fit:
        reasons.append("You're exactly what they need")
    elif offering > thresholds.good_fit:
        reasons.append("You could be very helpful to them")

    return PairScore(
        similarity=score,
        match_type=match_type,
        reasons=reasons[:MAX_REASONS],
        seeking=seeking,
        offering=offering,
        subjects=subjects,
        services=services,
    )


def rank_candidates(
    subject: Profile,
    candidates: List[Profile],
    thresholds: MatchThresholds = DEFAULT_THRESHOLDS,
) -> List[MatchResult]:
    """Score, filter, sort and truncate candidates for a subject."""
    matches: List[MatchResult] = []

    for candidate in candidates:
        pair = score_pair(subject, candidate, thresholds)
        if pair.similarity > thresholds.similarity:
            matches.append(MatchResult(
                user_id=candidate.user_id,
                username=candidate.user.username if candidate.user else None,
                profile=candidate.get_public_profile(),
                similarity=pair.similarity,
                match_type=pair.match_type,
                reasons=pair.reasons,
            ))

    matches.sort(key=lambda m: m.similarity, reverse=True)
    return matches[:thresholds.max_results]


class MatchEngine:
    """
    Computes, caches and propagates peer matches.

    Each operation opens its own session, so the engine can be shared by
    request handlers and background tasks alike.

    Attributes:
        session_factory: async_sessionmaker producing store sessions
        queue: Where background recomputations are enqueued
        thresholds: Match tuning constants
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        queue: MatchQueue,
        thresholds: MatchThresholds = DEFAULT_THRESHOLDS,
        recent_activity: timedelta = timedelta(hours=24),
        active_users_limit: int = 20,
    ):
        self.session_factory = session_factory
        self.queue = queue
        self.thresholds = thresholds
        self.recent_activity = recent_activity
        self.active_users_limit = active_users_limit

    async def find_matches(self, user_id: str) -> List[MatchResult]:
        """
        Find ranked matches for a user.

        Returns an empty list when the profile is missing or incomplete.
        Store errors propagate.
        """
        start = time.perf_counter()
        async with self.session_factory() as session:
            store = ProfileStore(session)
            subject = await store.get(user_id)
            if not subject or not subject.is_complete():
                return []

            candidates = await store.find_candidates(exclude_user_id=user_id)
            matches = rank_candidates(subject, candidates, self.thresholds)

        record_match_score_latency(time.perf_counter() - start)
        logger.info(f"Found {len(matches)} matches for user {user_id} among {len(candidates)} candidates")
        return matches

    async def update_user_matches(self, user_id: str, propagate: bool = True) -> List[MatchResult]:
        """
        Recompute and overwrite a user's cached matches.

        Args:
            user_id: User whose matches are recomputed
            propagate: Enqueue a recalculation for recently active peers.
                The peer sweep itself runs with propagate=False so it
                terminates.
        """
        matches = await self.find_matches(user_id)

        computed_at = utcnow()
        async with self.session_factory() as session:
            await ProfileStore(session).save_matches(
                user_id, [m.to_cache_entry(computed_at) for m in matches]
            )

        if propagate:
            self.queue.enqueue_peer_recalculation(user_id)

        return matches

    async def trigger_match_recalculation(self, updated_user_id: str) -> Dict[str, int]:
        """
        Recompute matches of peers who may now match the updated user.

        Peers are recently active (within recent_activity) and available
        for chat. They are processed one after another; a failing peer is
        logged and skipped.

        Returns:
            Dict with processing statistics
        """
        stats = {"processed": 0, "failed": 0}
        since = utcnow() - self.recent_activity

        async with self.session_factory() as session:
            peer_ids = await ProfileStore(session).find_recently_active_ids(updated_user_id, since)

        logger.info(f"Recalculating matches for {len(peer_ids)} peers of user {updated_user_id}")

        for peer_id in peer_ids:
            try:
                await self.update_user_matches(peer_id, propagate=False)
                stats["processed"] += 1
            except Exception:
                logger.exception(f"Error updating matches for user {peer_id}")
                record_peer_recalc_failure()
                stats["failed"] += 1

        return stats

    async def get_active_users(self, exclude_user_id: str) -> List[Profile]:
        """Online users available for chat, most recently seen first."""
        async with self.session_factory() as session:
            return await ProfileStore(session).find_active(
                exclude_user_id, limit=self.active_users_limit
            )


_match_engine: Optional[MatchEngine] = None


def get_match_engine() -> MatchEngine:
    """Shared MatchEngine wired to the application database and queue."""
    global _match_engine
    if _match_engine is None:
        from peermatch.config import get_settings
        from peermatch.database import async_session
        from peermatch.services.match_queue import get_match_queue

        settings = get_settings()
        _match_engine = MatchEngine(
            session_factory=async_session,
            queue=get_match_queue(),
            thresholds=MatchThresholds.from_settings(settings),
            recent_activity=timedelta(hours=settings.recent_activity_hours),
            active_users_limit=settings.active_users_limit,
        )
    return _match_engine
