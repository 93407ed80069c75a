"""
Background Tasks for Match Recomputation

Celery tasks for:
- Recomputing one user's matches after a profile change
- Recomputing matches of recently active peers of an updated user

Each task runs the async MatchEngine inside its own event loop with a
NullPool session factory, since connections cannot be shared across loops.
"""

import asyncio
import logging
import time
from datetime import timedelta

from prometheus_client import Histogram, Counter

from peermatch.celery import celery_app

logger = logging.getLogger(__name__)

# ==================== Prometheus Metrics ====================

TASK_DURATION = Histogram(
    "celery_task_duration_seconds",
    "Time spent executing Celery tasks",
    ["task_name"]
)

TASK_FAILURES = Counter(
    "celery_task_failures_total",
    "Number of Celery task failures",
    ["task_name"]
)


def build_worker_engine():
    """MatchEngine for a worker process; follow-up work goes back to Celery."""
    from peermatch.config import get_settings
    from peermatch.database import create_worker_session_factory
    from peermatch.services.match_queue import CeleryMatchQueue
    from peermatch.services.matcher import MatchEngine, MatchThresholds

    settings = get_settings()
    return MatchEngine(
        session_factory=create_worker_session_factory(),
        queue=CeleryMatchQueue(),
        thresholds=MatchThresholds.from_settings(settings),
        recent_activity=timedelta(hours=settings.recent_activity_hours),
        active_users_limit=settings.active_users_limit,
    )


# ==================== Celery Tasks ====================

@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def update_user_matches_task(self, user_id: str) -> dict:
    """
    Recompute and store a user's matches, then queue the peer sweep.

    Args:
        user_id: User whose profile changed

    Returns:
        Dict with the number of matches stored
    """
    start_time = time.time()

    try:
        matches = asyncio.run(build_worker_engine().update_user_matches(user_id))
        logger.info(f"Stored {len(matches)} matches for user {user_id}")
        return {"user_id": user_id, "matches": len(matches)}

    except Exception as exc:
        TASK_FAILURES.labels(task_name="update_user_matches").inc()
        logger.error(f"Match update failed for user {user_id}: {exc}")
        raise self.retry(exc=exc, countdown=60)

    finally:
        duration = time.time() - start_time
        TASK_DURATION.labels(task_name="update_user_matches").observe(duration)


@celery_app.task(bind=True, max_retries=3)
def recalculate_peer_matches_task(self, updated_user_id: str) -> dict:
    """
    Recompute matches of recently active peers of an updated user.

    Per-peer failures are counted in the returned stats; only a failure to
    run the sweep at all is retried.

    Returns:
        Dict with processing statistics
    """
    start_time = time.time()

    try:
        stats = asyncio.run(build_worker_engine().trigger_match_recalculation(updated_user_id))
        if stats["failed"]:
            TASK_FAILURES.labels(task_name="recalculate_peer_matches").inc(stats["failed"])
        return stats

    except Exception as exc:
        TASK_FAILURES.labels(task_name="recalculate_peer_matches").inc()
        logger.error(f"Peer recalculation failed for user {updated_user_id}: {exc}")
        raise self.retry(exc=exc, countdown=60)

    finally:
        duration = time.time() - start_time
        TASK_DURATION.labels(task_name="recalculate_peer_matches").observe(duration)
