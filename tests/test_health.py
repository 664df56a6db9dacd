"""Health check tests."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import pytest

import autoledger.main


def _session_factory(execute):
    @asynccontextmanager
    async def factory():
        session = AsyncMock()
        session.execute = execute
        yield session

    return factory


@pytest.mark.asyncio
async def test_health_check(anon_client):
    response = await anon_client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"


@pytest.mark.asyncio
async def test_readiness_check(anon_client, monkeypatch):
    monkeypatch.setattr(autoledger.main, "async_session_factory", _session_factory(AsyncMock()))
    response = await anon_client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["database"] == "ok"


@pytest.mark.asyncio
async def test_readiness_degraded_without_database(anon_client, monkeypatch):
    execute = AsyncMock(side_effect=ConnectionRefusedError("connection refused"))
    monkeypatch.setattr(autoledger.main, "async_session_factory", _session_factory(execute))
    response = await anon_client.get("/ready")
    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"]["database"].startswith("error:")


@pytest.mark.asyncio
async def test_request_id_is_echoed(anon_client):
    response = await anon_client.get("/health", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"
