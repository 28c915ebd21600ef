# ============================================================
# Module : graphpurge/services/scan_collector.py
# Objet  : Énumération des enfants d'une collection sans signal de fin.
# Invariants :
#  - Aucun identifiant dupliqué dans une passe.
#  - Aucune donnée conservée d'une passe à l'autre.
# ============================================================
"""Collecte des identifiants d'une collection par détection d'inactivité.

Le store relaie les enfants de façon asynchrone et n'émet jamais d'évènement de fin. La fin
d'une passe est donc inférée: un minuteur d'inactivité est réarmé à chaque nouvel identifiant;
la passe se termine quand la fenêtre d'inactivité s'écoule sans nouvelle arrivée (`idle`), ou
quand l'échéance absolue est atteinte (`deadline`). Le déclencheur est exposé pour que
l'appelant distingue une fin confiante d'une coupure forcée.
"""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Generator, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from graphpurge.app.metrics import PURGE_SCAN_TRIGGER
from graphpurge.domain.collections import META_KEY, CollectionRoot
from graphpurge.infra.graph.base import GraphStoreClient, is_tombstone


class ScanTrigger(str, Enum):
    """Raison de la fin d'une passe."""

    IDLE = "idle"
    DEADLINE = "deadline"


@dataclass(frozen=True)
class ScanResult:
    """Résultat figé d'une passe complète."""

    root: CollectionRoot
    ids: tuple[str, ...]
    trigger: ScanTrigger
    elapsed_s: float

    @property
    def possibly_incomplete(self) -> bool:
        return self.trigger is ScanTrigger.DEADLINE

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids)

    def __len__(self) -> int:
        return len(self.ids)


class ScanPass:
    """Passe paresseuse et à usage unique sur les enfants d'une collection.

    L'itération s'abonne au store, produit chaque nouvel identifiant dès son arrivée, et se
    désabonne à la fin. Après épuisement, `trigger` et `elapsed_s` sont renseignés.
    """

    def __init__(
        self,
        store: GraphStoreClient,
        root: CollectionRoot,
        idle_window_s: float,
        deadline_s: float,
    ) -> None:
        self.root = root
        self.trigger: ScanTrigger | None = None
        self.elapsed_s: float = 0.0
        self._store = store
        self._idle_window_s = idle_window_s
        self._deadline_s = deadline_s
        self._queue: queue.Queue[str] = queue.Queue()
        self._lock = threading.Lock()
        self._seen: set[str] = set()
        self._last_arrival = 0.0
        self._consumed = False

    def _on_child(self, value: Any, key: str) -> None:
        if not key or key == META_KEY or is_tombstone(value):
            return
        with self._lock:
            if key in self._seen:
                return
            self._seen.add(key)
            self._last_arrival = time.monotonic()
        self._queue.put(key)

    def _next_timeout(self, started: float) -> tuple[float, ScanTrigger]:
        now = time.monotonic()
        deadline_left = started + self._deadline_s - now
        with self._lock:
            idle_left = self._last_arrival + self._idle_window_s - now
        if deadline_left <= idle_left:
            return deadline_left, ScanTrigger.DEADLINE
        return idle_left, ScanTrigger.IDLE

    def __iter__(self) -> Generator[str, None, None]:
        if self._consumed:
            raise RuntimeError("a scan pass can only be iterated once")
        self._consumed = True
        started = time.monotonic()
        self._last_arrival = started
        unsubscribe = self._store.subscribe_children(self.root.value, self._on_child)
        try:
            while True:
                try:
                    yield self._queue.get_nowait()
                    continue
                except queue.Empty:
                    pass
                timeout, trigger = self._next_timeout(started)
                if timeout <= 0:
                    self.trigger = trigger
                    break
                try:
                    yield self._queue.get(timeout=timeout)
                except queue.Empty:
                    continue
        finally:
            if unsubscribe is not None:
                unsubscribe()
            self.elapsed_s = time.monotonic() - started
        # Identifiers observed before the cutoff still deserve a tombstone
        while True:
            try:
                yield self._queue.get_nowait()
            except queue.Empty:
                break
        PURGE_SCAN_TRIGGER.labels(root=self.root.value, trigger=self.trigger.value).inc()


class ScanCollector:
    """Fabrique de passes d'énumération indépendantes."""

    def __init__(
        self,
        store: GraphStoreClient,
        idle_window_s: float = 2.0,
        deadline_s: float = 30.0,
    ) -> None:
        if idle_window_s <= 0 or deadline_s <= 0:
            raise ValueError("idle window and deadline must be positive")
        self.store = store
        self.idle_window_s = idle_window_s
        self.deadline_s = deadline_s
        self._log = structlog.get_logger(__name__).bind(component="scan_collector")

    def enumerate(self, root: CollectionRoot) -> ScanPass:
        """Ouvre une nouvelle passe paresseuse sur `root`."""
        return ScanPass(self.store, root, self.idle_window_s, self.deadline_s)

    def collect(self, root: CollectionRoot) -> ScanResult:
        """Draine une passe complète et renvoie les identifiants avec leur déclencheur."""
        scan = self.enumerate(root)
        ids = tuple(scan)
        trigger = scan.trigger or ScanTrigger.DEADLINE
        result = ScanResult(root=root, ids=ids, trigger=trigger, elapsed_s=scan.elapsed_s)
        self._log.info(
            "scan_settled",
            root=root.value,
            count=len(ids),
            trigger=result.trigger.value,
            elapsed_s=round(result.elapsed_s, 3),
        )
        return result
