"""
Match Queue - background dispatch of match recomputation

Two kinds of work are queued, both fire-and-forget from the caller's
point of view:

    - user update: recompute one user's matches after a profile edit
    - peer recalculation: recompute matches of recently active peers

Backends (BACKGROUND_BACKEND setting):
    - asyncio: tasks scheduled on the running event loop (default)
    - celery: tasks sent to the "matching" Celery queue
"""

import asyncio
import logging
from typing import Callable, Optional, Protocol, Set

logger = logging.getLogger(__name__)


class MatchQueue(Protocol):
    def enqueue_user_update(self, user_id: str) -> None:
        ...

    def enqueue_peer_recalculation(self, user_id: str) -> None:
        ...

    async def drain(self) -> None:
        ...


class InProcessMatchQueue:
    """
    Runs match work as asyncio tasks on the current event loop.

    Failures are logged when a task finishes and never reach the caller.

    Args:
        engine_getter: Callable returning the MatchEngine to run work on.
            Resolved per task so the queue can be built before the engine.
    """

    def __init__(self, engine_getter: Callable):
        self._engine_getter = engine_getter
        self._tasks: Set[asyncio.Task] = set()

    def _spawn(self, name: str, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task {task.get_name()} failed: {exc!r}")

    def enqueue_user_update(self, user_id: str) -> None:
        engine = self._engine_getter()
        self._spawn(f"user-update:{user_id}", engine.update_user_matches(user_id))

    def enqueue_peer_recalculation(self, user_id: str) -> None:
        engine = self._engine_getter()
        self._spawn(f"peer-recalc:{user_id}", engine.trigger_match_recalculation(user_id))

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every queued task (including ones they enqueue) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class CeleryMatchQueue:
    """Sends match work to Celery workers."""

    def enqueue_user_update(self, user_id: str) -> None:
        from peermatch.tasks.matches import update_user_matches_task
        update_user_matches_task.delay(user_id)

    def enqueue_peer_recalculation(self, user_id: str) -> None:
        from peermatch.tasks.matches import recalculate_peer_matches_task
        recalculate_peer_matches_task.delay(user_id)

    async def drain(self) -> None:
        return None


_match_queue: Optional[MatchQueue] = None


def get_match_queue() -> MatchQueue:
    """Shared queue for the configured background backend."""
    global _match_queue
    if _match_queue is None:
        from peermatch.config import get_settings

        backend = get_settings().background_backend.lower()
        if backend == "celery":
            _match_queue = CeleryMatchQueue()
        elif backend == "asyncio":
            from peermatch.services.matcher import get_match_engine
            _match_queue = InProcessMatchQueue(get_match_engine)
        else:
            raise ValueError(
                f"Unknown background backend: {backend}. Supported: asyncio, celery"
            )
        logger.info(f"Using {backend} match queue")
    return _match_queue
