"""
Tests pour les routes d'administration /admin/destruction.

Chaque test remplace l'orchestrateur du conteneur par une instance neuve aux délais courts.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from graphpurge.api import routes_destruction
from graphpurge.app.main import app
from graphpurge.core.http_constants import (
    HTTP_ACCEPTED,
    HTTP_BAD_GATEWAY,
    HTTP_CONFLICT,
    HTTP_NO_CONTENT,
    HTTP_OK,
)
from graphpurge.services.orchestrator import DestructionOrchestrator
from tests.fakes import FAST_DEADLINE_S, FAST_IDLE_S, RecordingGraphStore


@pytest.fixture
def api(monkeypatch, store: RecordingGraphStore) -> tuple[TestClient, DestructionOrchestrator]:
    orchestrator = DestructionOrchestrator(
        store, idle_window_s=FAST_IDLE_S, deadline_s=FAST_DEADLINE_S, max_workers=2
    )
    monkeypatch.setattr(routes_destruction.container, "orchestrator", orchestrator)
    return TestClient(app), orchestrator


def test_emergency_success(api, store: RecordingGraphStore) -> None:
    client, _ = api
    store.seed("users/A", {"nickname": "a"})
    r = client.post("/admin/destruction/emergency")
    assert r.status_code == HTTP_OK
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "SERVER DATA COMPLETELY DESTROYED"
    assert body["log"][0]["action"] == "User destroyed: A"
    assert r.headers["X-Request-ID"]


def test_emergency_rejected_with_error_envelope(api, store: RecordingGraphStore) -> None:
    """Une purge concurrente est rejetée en 409 avec l'enveloppe standard."""
    client, orchestrator = api
    orchestrator.guard.begin()
    r = client.post("/admin/destruction/emergency", headers={"X-Trace-ID": "trace-1"})
    assert r.status_code == HTTP_CONFLICT
    body = r.json()
    assert body["code"] == "ALREADY_RUNNING"
    assert body["message"] == "Destruction already in progress"
    assert body["trace_id"] == "trace-1"
    assert store.writes == []


def test_emergency_store_unavailable_maps_to_bad_gateway(
    api, store: RecordingGraphStore
) -> None:
    client, _ = api
    store.seed("users/A", {"nickname": "a"})
    store.unavailable = True
    r = client.post("/admin/destruction/emergency")
    assert r.status_code == HTTP_BAD_GATEWAY
    body = r.json()
    assert body["success"] is False
    assert body["phase"] == "users"
    assert body["error_type"] == "StoreUnavailable"


def test_quick_reset_and_status(api) -> None:
    client, _ = api
    r = client.post("/admin/destruction/quick-reset")
    assert r.status_code == HTTP_OK
    assert r.json()["recursive"] is False
    status = client.get("/admin/destruction/status").json()
    assert status["running"] is False
    assert len(status["log"]) == 5


def test_quick_reset_store_unavailable(api, store: RecordingGraphStore) -> None:
    client, _ = api
    store.unavailable = True
    r = client.post("/admin/destruction/quick-reset")
    assert r.status_code == HTTP_BAD_GATEWAY
    body = r.json()
    assert body["code"] == "STORE_UNAVAILABLE"
    assert body["trace_id"]
    assert body["details"] == {"roots": []}


def test_clear_log_returns_no_content(api) -> None:
    client, orchestrator = api
    orchestrator.quick_reset()
    r = client.delete("/admin/destruction/log")
    assert r.status_code == HTTP_NO_CONTENT
    assert orchestrator.get_status()["log"] == []


def test_cancel_without_running_purge(api) -> None:
    client, _ = api
    r = client.post("/admin/destruction/cancel")
    assert r.status_code == HTTP_ACCEPTED
    assert r.json() == {"cancel_requested": False}
