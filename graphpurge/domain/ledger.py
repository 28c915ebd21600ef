"""Journal append-only des actions destructives.

Le journal vit en mémoire pour la durée du processus: il n'est jamais persisté et n'est vidé
que sur demande explicite (`clear`). `snapshot` renvoie une copie immuable, sûre à lire pendant
qu'une purge est en cours.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any


def utc_now_iso() -> str:
    """Horodatage ISO 8601 UTC avec microsecondes."""
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class LedgerEntry:
    """Action destructive unitaire (tombstone, écriture factice, purge interne)."""

    timestamp: str
    phase: str
    target_id: str
    action: str

    def to_dict(self) -> dict[str, Any]:
        """Représentation JSON-sérialisable."""
        return asdict(self)


class DestructionLedger:
    """Journal ordonné par ordre d'émission, protégé par un verrou interne."""

    def __init__(self, max_entries: int | None = None) -> None:
        self._lock = threading.Lock()
        self._entries: deque[LedgerEntry] = deque(maxlen=max_entries)

    def record(self, entry: LedgerEntry) -> None:
        """Ajoute une entrée en fin de journal."""
        with self._lock:
            self._entries.append(entry)

    def append(self, phase: str, target_id: str, action: str) -> LedgerEntry:
        """Construit une entrée horodatée maintenant et l'enregistre."""
        entry = LedgerEntry(
            timestamp=utc_now_iso(), phase=phase, target_id=target_id, action=action
        )
        self.record(entry)
        return entry

    def snapshot(self) -> tuple[LedgerEntry, ...]:
        """Copie immuable du journal courant."""
        with self._lock:
            return tuple(self._entries)

    def clear(self) -> None:
        """Vide le journal, indépendamment de l'état d'exécution."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
