"""
Tests for Celery Background Tasks

Tests cover:
- Celery app configuration
- update_user_matches_task
- recalculate_peer_matches_task
- Task retries on failure
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from peermatch.tasks.matches import (
    recalculate_peer_matches_task,
    update_user_matches_task,
)
from peermatch.celery import celery_app


class TestCeleryApp:
    """Test Celery app configuration."""

    def test_celery_app_exists(self):
        """Celery app should be configured."""
        assert celery_app is not None
        assert celery_app.main == "peer_matching"

    def test_celery_uses_redis_broker(self):
        """Should use Redis as message broker."""
        assert "redis" in celery_app.conf.broker_url

    def test_match_tasks_routed_to_matching_queue(self):
        routes = celery_app.conf.task_routes
        assert routes["peermatch.tasks.matches.update_user_matches_task"] == {"queue": "matching"}
        assert routes["peermatch.tasks.matches.recalculate_peer_matches_task"] == {"queue": "matching"}


@pytest.fixture
def mock_engine():
    engine = MagicMock()
    engine.update_user_matches = AsyncMock(return_value=[MagicMock(), MagicMock()])
    engine.trigger_match_recalculation = AsyncMock(return_value={"processed": 3, "failed": 1})
    return engine


class TestUpdateUserMatchesTask:
    """Test update_user_matches_task."""

    def test_is_celery_task(self):
        assert hasattr(update_user_matches_task, "delay")
        assert hasattr(update_user_matches_task, "apply_async")

    @patch("peermatch.tasks.matches.build_worker_engine")
    def test_runs_engine_update(self, mock_build, mock_engine):
        mock_build.return_value = mock_engine

        result = update_user_matches_task("user-1")

        assert result == {"user_id": "user-1", "matches": 2}
        mock_engine.update_user_matches.assert_awaited_once_with("user-1")

    @patch("peermatch.tasks.matches.build_worker_engine")
    def test_failure_is_retried(self, mock_build, mock_engine):
        """Called directly, Celery re-raises the original error instead of scheduling a retry."""
        mock_engine.update_user_matches = AsyncMock(side_effect=RuntimeError("db locked"))
        mock_build.return_value = mock_engine

        with pytest.raises(RuntimeError, match="db locked"):
            update_user_matches_task("user-1")


class TestRecalculatePeerMatchesTask:
    """Test recalculate_peer_matches_task."""

    @patch("peermatch.tasks.matches.build_worker_engine")
    def test_returns_stats(self, mock_build, mock_engine):
        mock_build.return_value = mock_engine

        result = recalculate_peer_matches_task("user-1")

        assert result == {"processed": 3, "failed": 1}
        mock_engine.trigger_match_recalculation.assert_awaited_once_with("user-1")


class TestBuildWorkerEngine:
    """Worker engines send follow-up work back to Celery."""

    def test_uses_celery_queue(self):
        from peermatch.services.match_queue import CeleryMatchQueue
        from peermatch.tasks.matches import build_worker_engine

        engine = build_worker_engine()

        assert isinstance(engine.queue, CeleryMatchQueue)
