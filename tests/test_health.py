"""Tests for GET /api/health and the root endpoint."""
import pytest
from httpx import AsyncClient

from app.services.text_generator import OllamaTextGenerator


def _fake_ollama(monkeypatch, healthy: bool) -> None:
    async def _check_health(self) -> bool:
        return healthy

    monkeypatch.setattr(OllamaTextGenerator, "check_health", _check_health)


@pytest.mark.asyncio
async def test_health_returns_200(client: AsyncClient, monkeypatch):
    _fake_ollama(monkeypatch, healthy=True)
    resp = await client.get("/api/health/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["database"] == "ok"
    assert data["ollama"] == "ok"
    assert data["status"] == "healthy"


@pytest.mark.asyncio
async def test_health_degraded_without_ollama(client: AsyncClient, monkeypatch):
    _fake_ollama(monkeypatch, healthy=False)
    resp = await client.get("/api/health/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["database"] == "ok"
    assert data["ollama"] == "error"
    assert data["status"] == "degraded"


@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient):
    resp = await client.get("/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "Assignment Engine API"
    assert data["endpoints"]["generate"] == "/api/assignments/generate"
