"""Garde d'exécution unique pour les purges destructives.

Machine d'états explicite `idle → running → completed|failed`, derrière un verrou unique.
Un état terminal se comporte comme `idle` pour la purge suivante.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum

from graphpurge.domain.errors import AlreadyRunningError


class RunState(str, Enum):
    """État process-wide d'une purge."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class MutexGuard:
    """Single-writer run-state machine preventing concurrent destructive runs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = RunState.IDLE

    @property
    def state(self) -> RunState:
        """Lecture instantanée de l'état courant."""
        return self._state

    @property
    def running(self) -> bool:
        return self._state is RunState.RUNNING

    def try_begin(self) -> bool:
        """Passe en `running` si aucune purge n'est en cours; sinon renvoie False."""
        with self._lock:
            if self._state is RunState.RUNNING:
                return False
            self._state = RunState.RUNNING
            return True

    def begin(self) -> None:
        """Comme `try_begin`, mais lève `AlreadyRunningError` en cas de rejet."""
        if not self.try_begin():
            raise AlreadyRunningError()

    def end(self, success: bool) -> RunState:
        """Termine la purge courante (`completed` ou `failed`)."""
        with self._lock:
            if self._state is not RunState.RUNNING:
                raise RuntimeError(f"cannot end a run from state {self._state.value}")
            self._state = RunState.COMPLETED if success else RunState.FAILED
            return self._state

    @contextmanager
    def run(self) -> Iterator[None]:
        """Encadre une purge: `begin` à l'entrée, `end` sur tous les chemins de sortie.

        Le corps signale un échec en levant une exception; toute exception est propagée
        après libération du garde.
        """
        self.begin()
        success = False
        try:
            yield
            success = True
        finally:
            self.end(success)
