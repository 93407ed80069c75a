"""
Tests for background match dispatch.

Run with: cd backend && pytest tests/test_match_queue.py -v
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from peermatch.services.match_queue import CeleryMatchQueue, InProcessMatchQueue


class TestInProcessMatchQueue:
    """Tests for the asyncio-backed queue."""

    @pytest.fixture
    def engine(self):
        engine = MagicMock()
        engine.update_user_matches = AsyncMock(return_value=[])
        engine.trigger_match_recalculation = AsyncMock(return_value={"processed": 0, "failed": 0})
        return engine

    @pytest.mark.asyncio
    async def test_enqueue_does_not_wait(self, engine):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_update(user_id):
            started.set()
            await release.wait()
            return []

        engine.update_user_matches = AsyncMock(side_effect=slow_update)
        queue = InProcessMatchQueue(lambda: engine)

        queue.enqueue_user_update("alice")

        assert queue.pending == 1
        await started.wait()
        release.set()
        await queue.drain()
        assert queue.pending == 0
        engine.update_user_matches.assert_awaited_once_with("alice")

    @pytest.mark.asyncio
    async def test_peer_recalculation(self, engine):
        queue = InProcessMatchQueue(lambda: engine)

        queue.enqueue_peer_recalculation("alice")
        await queue.drain()

        engine.trigger_match_recalculation.assert_awaited_once_with("alice")

    @pytest.mark.asyncio
    async def test_failures_are_logged_not_raised(self, engine, caplog):
        engine.update_user_matches = AsyncMock(side_effect=RuntimeError("db down"))
        queue = InProcessMatchQueue(lambda: engine)

        queue.enqueue_user_update("alice")
        await queue.drain()

        assert "db down" in caplog.text

    @pytest.mark.asyncio
    async def test_drain_waits_for_follow_up_work(self, engine):
        queue = InProcessMatchQueue(lambda: engine)

        async def update_and_propagate(user_id):
            queue.enqueue_peer_recalculation(user_id)
            return []

        engine.update_user_matches = AsyncMock(side_effect=update_and_propagate)

        queue.enqueue_user_update("alice")
        await queue.drain()

        engine.trigger_match_recalculation.assert_awaited_once_with("alice")


class TestCeleryMatchQueue:
    """Tests for the Celery-backed queue."""

    def test_user_update_sends_task(self):
        with patch("peermatch.tasks.matches.update_user_matches_task") as mock_task:
            CeleryMatchQueue().enqueue_user_update("alice")

        mock_task.delay.assert_called_once_with("alice")

    def test_peer_recalculation_sends_task(self):
        with patch("peermatch.tasks.matches.recalculate_peer_matches_task") as mock_task:
            CeleryMatchQueue().enqueue_peer_recalculation("alice")

        mock_task.delay.assert_called_once_with("alice")
