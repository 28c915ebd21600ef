"""Tests de la façade d'orchestration (destruction complète, reset rapide, statut, journal)."""

from __future__ import annotations

import threading
import time
from typing import Any

from graphpurge.domain.collections import TOP_LEVEL_ROOTS
from graphpurge.domain.run_guard import RunState
from graphpurge.services.orchestrator import DestructionOrchestrator
from tests.fakes import FAST_DEADLINE_S, FAST_IDLE_S, RecordingGraphStore


def _seed_small_graph(store: RecordingGraphStore) -> None:
    for user in ("A", "B"):
        store.seed(f"users/{user}", {"nickname": user})
        store.seed(f"~{user}", {"pub": user})
        store.seed(f"profiles/{user}", {"bio": user})
    store.seed("conversations/C1", {"participants": ["A", "B"]})
    store.seed("messages/C1", {"m1": "hello"})
    store.seed("friendships/F1", {"a": "A", "b": "B"})


def _actions(result: dict[str, Any]) -> list[str]:
    return [entry["action"] for entry in result["log"]]


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class _GatedStore(RecordingGraphStore):
    """Bloque chaque écriture jusqu'à l'ouverture de la porte."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.gate = threading.Event()

    def write(self, path: str, value: Any) -> None:
        self.entered.set()
        self.gate.wait(timeout=5)
        super().write(path, value)


def test_emergency_destruction_tombstones_every_entity(
    store: RecordingGraphStore, orchestrator: DestructionOrchestrator
) -> None:
    _seed_small_graph(store)
    result = orchestrator.emergency_destruction()

    assert result["success"] is True
    assert result["message"] == "SERVER DATA COMPLETELY DESTROYED"
    assert result["confidence"] == "confident"
    assert isinstance(result["duration_ms"], int)
    assert [p["phase"] for p in result["phases"]] == [
        "users",
        "conversations",
        "messages",
        "friendships",
        "internal_store_clear",
        "anti_recovery_overwrite",
    ]
    tombstoned = set(store.tombstoned_paths())
    assert {
        "users/A",
        "~A",
        "profiles/A",
        "users/B",
        "~B",
        "profiles/B",
        "conversations/C1",
        "messages/C1",
        "friendships/F1",
    } <= tombstoned
    actions = _actions(result)
    assert "User destroyed: A" in actions
    assert "User destroyed: B" in actions
    assert "Conversation destroyed: C1" in actions
    assert "Friendship destroyed: F1" in actions
    assert sum(a.startswith("Fake user created: ") for a in actions) == 5
    assert sum(a.startswith("Fake conversation created: ") for a in actions) == 3
    for path in ("users/A", "~B", "messages/C1", "friendships/F1"):
        assert store.read(path) is None
    assert orchestrator.get_status()["state"] == RunState.COMPLETED.value


def test_emergency_destruction_is_repeatable(
    store: RecordingGraphStore, orchestrator: DestructionOrchestrator
) -> None:
    """Une seconde purge réussit aussi; les faux enregistrements précédents sont tombstonés."""
    _seed_small_graph(store)
    first = orchestrator.emergency_destruction()
    second = orchestrator.emergency_destruction()
    assert first["success"] is True
    assert second["success"] is True
    fake_users = [
        a.split(": ", 1)[1] for a in _actions(first) if a.startswith("Fake user created: ")
    ]
    assert fake_users
    for fake in fake_users:
        assert f"users/{fake}" in store.tombstoned_paths()
        assert f"User destroyed: {fake}" in _actions(second)


def test_rejected_while_running_without_side_effects(
    store: RecordingGraphStore, orchestrator: DestructionOrchestrator
) -> None:
    _seed_small_graph(store)
    orchestrator.guard.begin()
    result = orchestrator.emergency_destruction()
    assert result["success"] is False
    assert result["error"] == "Destruction already in progress"
    assert result["error_type"] == "AlreadyRunningError"
    assert store.writes == []
    assert store.subscriptions == []
    assert orchestrator.get_status()["running"] is True


def test_status_cancel_and_rejection_during_a_run() -> None:
    """Pendant une purge: statut non bloquant, second appel rejeté, annulation entre phases."""
    store = _GatedStore()
    store.seed("users/A", {"nickname": "a"})
    orchestrator = DestructionOrchestrator(
        store, idle_window_s=FAST_IDLE_S, deadline_s=FAST_DEADLINE_S, max_workers=2
    )
    results: list[dict[str, Any]] = []
    worker = threading.Thread(target=lambda: results.append(orchestrator.emergency_destruction()))
    worker.start()
    try:
        assert store.entered.wait(timeout=5)
        status = orchestrator.get_status()
        assert status["running"] is True
        assert status["state"] == "running"
        assert _wait_for(lambda: orchestrator.get_status()["log"])
        assert _actions(orchestrator.get_status()) == ["User destroyed: A"]
        assert orchestrator.emergency_destruction()["error_type"] == "AlreadyRunningError"
        assert orchestrator.request_cancel() is True
    finally:
        store.gate.set()
        worker.join(timeout=10)

    [result] = results
    assert result["success"] is False
    assert result["error_type"] == "PurgeCancelled"
    assert result["phase"] == "conversations"
    assert "User destroyed: A" in _actions(result)
    assert orchestrator.get_status()["state"] == "failed"
    assert orchestrator.request_cancel() is False


def test_status_log_shows_issued_tombstones_before_scan_settles() -> None:
    """Le journal reflète un tombstone émis sans attendre la fin de la fenêtre d'inactivité."""
    store = RecordingGraphStore()
    store.seed("users/A", {"nickname": "a"})
    store.write_delay_s = 0.02
    orchestrator = DestructionOrchestrator(
        store, idle_window_s=1.0, deadline_s=FAST_DEADLINE_S, max_workers=2
    )
    worker = threading.Thread(target=orchestrator.emergency_destruction)
    worker.start()
    try:
        assert _wait_for(lambda: len(store.tombstoned_paths()) == 3)
        status = orchestrator.get_status()
        assert status["running"] is True
        assert _actions(status) == ["User destroyed: A"]
    finally:
        worker.join(timeout=15)
    assert orchestrator.get_status()["state"] == "completed"


def test_phase_failure_is_reported(
    store: RecordingGraphStore, orchestrator: DestructionOrchestrator
) -> None:
    store.seed("users/A", {"nickname": "a"})
    store.unavailable = True
    result = orchestrator.emergency_destruction()
    assert result["success"] is False
    assert result["phase"] == "users"
    assert result["error_type"] == "StoreUnavailable"
    assert result["error"] == "graph store unreachable"
    assert _actions(result) == ["User destroyed: A"]
    assert orchestrator.get_status()["running"] is False


def test_quick_reset_writes_one_tombstone_per_root(
    store: RecordingGraphStore, orchestrator: DestructionOrchestrator
) -> None:
    _seed_small_graph(store)
    result = orchestrator.quick_reset()
    assert result["success"] is True
    assert result["recursive"] is False
    assert result["roots"] == [r.value for r in TOP_LEVEL_ROOTS]
    assert len(store.writes) == 5
    assert store.tombstoned_paths() == [r.value for r in TOP_LEVEL_ROOTS]
    assert store.subscriptions == []
    # Older children are shadowed by the root tombstone
    assert store.read("users/A") is None
    assert store.visible_children("friendships") == {}
    # Personal roots are not under any top-level root
    assert store.read("~A") == {"pub": "A"}
    assert [e["action"] for e in orchestrator.get_status()["log"]] == [
        f"Root tombstoned: {r.value}" for r in TOP_LEVEL_ROOTS
    ]


def test_quick_reset_child_merged_later_resurrects(
    store: RecordingGraphStore, orchestrator: DestructionOrchestrator
) -> None:
    """Une écriture enfant répliquée après le reset redevient visible."""
    orchestrator.quick_reset()
    store.merge("users/Z", {"nickname": "late"}, store.clock + 1)
    assert store.read("users/Z") == {"nickname": "late"}


def test_quick_reset_partial_failure(
    store: RecordingGraphStore, orchestrator: DestructionOrchestrator
) -> None:
    store.fail_paths = {"messages"}
    result = orchestrator.quick_reset()
    assert result["success"] is False
    assert result["roots"] == ["users", "conversations", "friendships", "profiles"]
    assert result["failed"] == [{"root": "messages", "error": "write rejected for messages"}]


def test_quick_reset_store_unavailable(
    store: RecordingGraphStore, orchestrator: DestructionOrchestrator
) -> None:
    store.unavailable = True
    result = orchestrator.quick_reset()
    assert result["success"] is False
    assert result["error_type"] == "StoreUnavailable"
    assert result["roots"] == []


def test_clear_log_empties_status_log(
    store: RecordingGraphStore, orchestrator: DestructionOrchestrator
) -> None:
    _seed_small_graph(store)
    orchestrator.emergency_destruction()
    assert orchestrator.get_status()["log"]
    orchestrator.clear_log()
    status = orchestrator.get_status()
    assert status["log"] == []
    assert status["running"] is False
    orchestrator.clear_log()


def test_status_when_idle(orchestrator: DestructionOrchestrator) -> None:
    status = orchestrator.get_status()
    assert status["running"] is False
    assert status["state"] == "idle"
    assert status["log"] == []
    assert "timestamp" in status
