"""Store graphe en mémoire avec fusion last-write-wins (utilisé pour dev/tests).

Chaque chemin porte une horloge logique (Lamport). Une écriture locale prend l'horloge
suivante; une écriture répliquée (`merge`) arrive avec sa propre horloge et ne s'applique que
si elle domine la valeur courante. Un tombstone sur un parent masque les enfants plus anciens,
mais un enfant écrit plus tard redevient visible: c'est la résurrection acceptée du modèle.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from graphpurge.domain.collections import split_path
from graphpurge.infra.graph.base import ChildCallback, Unsubscribe, is_tombstone


@dataclass(frozen=True)
class _Node:
    value: Any
    state: int


class InMemoryGraphStore:
    """Implémentation mémoire de `GraphStoreClient`, non persistante."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._nodes: dict[str, _Node] = {}
        self._subscribers: dict[str, list[ChildCallback]] = {}
        self._clock = 0

    @property
    def clock(self) -> int:
        return self._clock

    def _dominates(self, path: str, value: Any, state: int) -> bool:
        cur = self._nodes.get(path)
        if cur is None or state > cur.state:
            return True
        # Same clock: deterministic tie-break on the serialized value
        return state == cur.state and repr(value) > repr(cur.value)

    def _apply(self, path: str, value: Any, state: int) -> bool:
        with self._lock:
            self._clock = max(self._clock, state)
            if not self._dominates(path, value, state):
                return False
            self._nodes[path] = _Node(value=value, state=state)
            return True

    def write(self, path: str, value: Any) -> None:
        """Écriture locale: horloge suivante, puis notification des abonnés du parent."""
        with self._lock:
            state = self._clock + 1
            applied = self._apply(path, value, state)
        if applied:
            self._notify(path, value)

    def merge(self, path: str, value: Any, state: int) -> bool:
        """Applique une écriture répliquée portant l'horloge `state`; renvoie True si retenue."""
        applied = self._apply(path, value, state)
        if applied:
            self._notify(path, value)
        return applied

    def state_of(self, path: str) -> int | None:
        node = self._nodes.get(path)
        return node.state if node else None

    def _shadowed(self, path: str, state: int) -> bool:
        parent, _ = split_path(path)
        while parent is not None:
            node = self._nodes.get(parent)
            if node is not None and is_tombstone(node.value) and node.state > state:
                return True
            parent, _ = split_path(parent)
        return False

    def read(self, path: str) -> Any:
        """Valeur visible du chemin, ou None si absente, tombstonée ou masquée."""
        with self._lock:
            node = self._nodes.get(path)
            if node is None or is_tombstone(node.value) or self._shadowed(path, node.state):
                return None
            return node.value

    def visible_children(self, path: str) -> dict[str, Any]:
        """Enfants directs visibles de `path`."""
        with self._lock:
            out: dict[str, Any] = {}
            for child, node in self._nodes.items():
                parent, key = split_path(child)
                if parent != path or is_tombstone(node.value):
                    continue
                if not self._shadowed(child, node.state):
                    out[key] = node.value
            return out

    def subscribe_children(self, path: str, callback: ChildCallback) -> Unsubscribe:
        """Rejoue les enfants visibles puis relaie chaque écriture ultérieure sous `path`."""
        with self._lock:
            self._subscribers.setdefault(path, []).append(callback)
            known = self.visible_children(path)
        for key, value in known.items():
            callback(value, key)

        def _unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(path, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return _unsubscribe

    def _notify(self, path: str, value: Any) -> None:
        parent, key = split_path(path)
        if parent is None:
            return
        with self._lock:
            callbacks = list(self._subscribers.get(parent, []))
        for cb in callbacks:
            cb(value, key)
