"""
Tests for the FastAPI application: root, health probes and lifespan wiring.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from mail_agent_bot.api.teams.conversation_state import PendingAuthorization, PendingAuthorizationStore
from mail_agent_bot.main import app, sweep_pending_authorizations


@pytest.fixture
def agent_service():
    return MagicMock(close=AsyncMock())


@pytest.fixture
def async_credential():
    return MagicMock(close=AsyncMock())


@pytest.fixture
def client(agent_service, async_credential):
    with patch("mail_agent_bot.main.build_relay", return_value=(MagicMock(), agent_service, async_credential)):
        with TestClient(app) as test_client:
            yield test_client


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "mail-agent-bot"
    assert data["endpoints"]["bot_messages"] == "/api/messages"


@pytest.mark.parametrize("path", ["/health", "/health/"])
def test_health(client, path):
    response = client.get(path)

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_detailed_health_reports_relay(client):
    response = client.get("/health/detailed")

    data = response.json()
    assert data["overall_status"] == "healthy"
    assert data["components"]["relay"] == {"status": "ready"}
    assert data["components"]["agent_service"]["agent_name"] == "mail-assistant"
    assert data["components"]["pending_authorizations"]["count"] == 0
    assert data["components"]["pending_authorizations"]["ttl_seconds"] == 3600


def test_detailed_health_degraded_without_relay(client):
    relay = app.state.relay
    app.state.relay = None
    try:
        data = client.get("/health/detailed").json()
    finally:
        app.state.relay = relay

    assert data["overall_status"] == "degraded"
    assert data["components"]["relay"] == {"status": "not_initialized"}


def test_lifespan_shares_store_and_cleans_up(agent_service, async_credential):
    with patch("mail_agent_bot.main.build_relay", return_value=(MagicMock(), agent_service, async_credential)) as build:
        with TestClient(app):
            store = app.state.pending_store
            assert build.call_args.args[1] is store
            store.set(PendingAuthorization("msteams:user-1", "conv-1", "hi", store.now_ms()))
            assert len(store) == 1

    assert len(store) == 0
    agent_service.close.assert_awaited_once()
    async_credential.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_sweep_evicts_expired_entries():
    store = PendingAuthorizationStore(ttl_seconds=60)
    store.evict_expired = MagicMock()

    sleep = AsyncMock(side_effect=[None, None, RuntimeError("stop")])
    with pytest.raises(RuntimeError):
        await sweep_pending_authorizations(store, 300, sleep=sleep)

    sleep.assert_awaited_with(300)
    assert store.evict_expired.call_count == 2


@pytest.mark.asyncio
async def test_sweep_survives_eviction_errors():
    store = PendingAuthorizationStore(ttl_seconds=60)
    store.evict_expired = MagicMock(side_effect=[KeyError("race"), 0])

    sleep = AsyncMock(side_effect=[None, None, RuntimeError("stop")])
    with pytest.raises(RuntimeError):
        await sweep_pending_authorizations(store, 300, sleep=sleep)

    assert store.evict_expired.call_count == 2
