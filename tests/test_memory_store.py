"""Tests du store graphe mémoire (fusion last-write-wins, tombstones, abonnements)."""

from __future__ import annotations

from graphpurge.infra.graph.base import TOMBSTONE, GraphStoreClient, is_tombstone
from graphpurge.infra.graph.memory_store import InMemoryGraphStore


def test_implements_client_protocol() -> None:
    assert isinstance(InMemoryGraphStore(), GraphStoreClient)


def test_tombstone_sentinel_is_singleton_and_falsy() -> None:
    assert is_tombstone(TOMBSTONE)
    assert is_tombstone(None)
    assert not TOMBSTONE
    assert repr(TOMBSTONE) == "TOMBSTONE"


def test_tombstone_dominates_earlier_replica_write() -> None:
    """Un tombstone l'emporte sur une écriture répliquée d'horloge antérieure."""
    store = InMemoryGraphStore()
    store.write("users/A", {"nickname": "a"})
    stale_state = store.state_of("users/A")
    store.write("users/A", TOMBSTONE)
    assert store.merge("users/A", {"nickname": "stale"}, stale_state) is False
    assert store.read("users/A") is None


def test_later_replica_write_resurrects() -> None:
    """Une écriture fusionnée plus tard ressuscite l'entité: limitation acceptée."""
    store = InMemoryGraphStore()
    store.write("users/A", {"nickname": "a"})
    store.write("users/A", TOMBSTONE)
    assert store.merge("users/A", {"nickname": "late"}, store.clock + 5) is True
    assert store.read("users/A") == {"nickname": "late"}


def test_root_tombstone_shadows_only_older_children() -> None:
    store = InMemoryGraphStore()
    store.write("users/A", {"n": 1})
    store.write("users", TOMBSTONE)
    assert store.read("users/A") is None
    assert store.visible_children("users") == {}
    store.merge("users/B", {"n": 2}, store.clock + 1)
    assert store.visible_children("users") == {"B": {"n": 2}}


def test_subscribe_replays_known_then_relays_new_children() -> None:
    store = InMemoryGraphStore()
    store.write("users/A", {"n": 1})
    store.write("users/gone", {"n": 0})
    store.write("users/gone", TOMBSTONE)
    seen: list[tuple[object, str]] = []
    unsubscribe = store.subscribe_children("users", lambda v, k: seen.append((v, k)))
    assert seen == [({"n": 1}, "A")]
    store.write("users/B", {"n": 2})
    store.write("profiles/B", {"n": 2})
    assert seen[-1] == ({"n": 2}, "B")
    unsubscribe()
    store.write("users/C", {"n": 3})
    assert [k for _, k in seen] == ["A", "B"]


def test_top_level_paths_have_no_parent_subscribers() -> None:
    store = InMemoryGraphStore()
    seen: list[str] = []
    store.subscribe_children("users", lambda v, k: seen.append(k))
    store.write("~A", {"pub": "A"})
    assert seen == []
    assert store.read("~A") == {"pub": "A"}
