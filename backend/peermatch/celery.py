"""
Celery Application Configuration

Used when BACKGROUND_BACKEND=celery. Match recomputation then runs on
Celery workers instead of the API process:
- Redis as message broker and result backend
- Task autodiscovery from peermatch.tasks
- Late acknowledgement and retries for reliability

Usage:
    # Start worker:
    celery -A peermatch.celery worker --loglevel=info -Q matching

    # Enqueue a task:
    from peermatch.tasks.matches import update_user_matches_task
    update_user_matches_task.delay("user-123")
"""

from celery import Celery
from peermatch.config import get_settings

settings = get_settings()

celery_app = Celery(
    "peer_matching",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["peermatch.tasks.matches"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    worker_prefetch_multiplier=1,  # Fair task distribution
    worker_concurrency=4,

    result_expires=3600,
    task_track_started=True,

    task_acks_late=True,  # Acknowledge after completion
    task_reject_on_worker_lost=True,

    task_routes={
        "peermatch.tasks.matches.update_user_matches_task": {"queue": "matching"},
        "peermatch.tasks.matches.recalculate_peer_matches_task": {"queue": "matching"},
    },

    task_default_queue="default",
)

celery_app.autodiscover_tasks(["peermatch.tasks"])
