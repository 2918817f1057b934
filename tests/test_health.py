"""Tests for the health check endpoint."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from promoboard.config import settings
from promoboard.main import app


@pytest.mark.asyncio
async def test_health_check_all_healthy(client):
    """Health check returns 200 when all components are healthy."""
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["checks"]["database"]["status"] == "healthy"
    assert data["checks"]["redis"]["status"] == "healthy"
    assert data["checks"]["scheduler_worker"]["status"] == "disabled"


@pytest.mark.asyncio
async def test_health_check_redis_down(client):
    """Health check returns 503 when Redis is down."""
    app.state.redis.ping = AsyncMock(side_effect=Exception("Connection failed"))

    response = await client.get("/health")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["checks"]["redis"]["status"] == "unhealthy"
    assert "Connection failed" in data["checks"]["redis"]["error"]


@pytest.mark.asyncio
async def test_health_check_scheduler_stopped(client, monkeypatch):
    """Health check returns 503 when the scheduler task has died."""
    monkeypatch.setattr(settings, "scheduler_enabled", True)
    stopped = MagicMock()
    stopped.done.return_value = True
    stopped.cancelled.return_value = False
    app.state.scheduler_worker_task = stopped

    response = await client.get("/health")

    assert response.status_code == 503
    data = response.json()
    assert data["checks"]["scheduler_worker"]["status"] == "unhealthy"
    assert data["checks"]["scheduler_worker"]["error"] == "Worker task stopped"


@pytest.mark.asyncio
async def test_health_check_scheduler_running(client, monkeypatch):
    monkeypatch.setattr(settings, "scheduler_enabled", True)
    running = MagicMock()
    running.done.return_value = False
    running.cancelled.return_value = False
    app.state.scheduler_worker_task = running

    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["checks"]["scheduler_worker"]["status"] == "healthy"


@pytest.mark.asyncio
async def test_metrics_endpoint(client):
    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "promoboard_votes_total" in response.text
