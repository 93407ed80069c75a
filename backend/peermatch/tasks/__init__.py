"""
Background Tasks Package

Celery tasks for match recomputation outside the API process.
"""

from peermatch.tasks.matches import (
    update_user_matches_task,
    recalculate_peer_matches_task,
)

__all__ = [
    "update_user_matches_task",
    "recalculate_peer_matches_task",
]
