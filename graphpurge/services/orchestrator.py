"""Façade d'orchestration consommée par le processus hôte.

Quatre points d'entrée, chacun renvoyant une structure JSON-sérialisable:
- `emergency_destruction()`: destruction complète en six phases, sous garde d'exécution unique.
- `quick_reset()`: un tombstone par racine de premier niveau, sans récursion ni garde.
- `get_status()`: lecture instantanée, non bloquante, de l'état et du journal.
- `clear_log()`: vide le journal.

`quick_reset` offre une garantie plus faible que la destruction complète: une écriture enfant
encore en cours de réplication peut réapparaître sous une racine tombstonée, selon la règle de
fusion du store. Il n'exclut pas non plus une destruction complète concurrente.
"""

from __future__ import annotations

import threading
import time
from typing import Any

import structlog

from graphpurge.app.metrics import PURGE_QUICK_RESETS, PURGE_RUNS
from graphpurge.domain.collections import TOP_LEVEL_ROOTS, CollectionRoot
from graphpurge.domain.errors import (
    AlreadyRunningError,
    PhaseFailure,
    PurgeCancelled,
    StoreUnavailable,
)
from graphpurge.domain.ledger import DestructionLedger, utc_now_iso
from graphpurge.domain.run_guard import MutexGuard, RunState
from graphpurge.infra.graph.base import TOMBSTONE, GraphStoreClient
from graphpurge.services.anti_recovery import AntiRecoveryOverwriter
from graphpurge.services.fanout_writer import FanOutWriter
from graphpurge.services.phase_runner import DestructionPhaseRunner
from graphpurge.services.scan_collector import ScanCollector

QUICK_RESET_PHASE = "quick_reset"


class DestructionOrchestrator:
    """Point d'entrée unique des opérations de purge."""

    def __init__(
        self,
        store: GraphStoreClient,
        idle_window_s: float = 2.0,
        deadline_s: float = 30.0,
        max_workers: int = 8,
        fake_counts: dict[CollectionRoot, int] | None = None,
        ledger: DestructionLedger | None = None,
        guard: MutexGuard | None = None,
    ) -> None:
        self.store = store
        self.ledger = ledger if ledger is not None else DestructionLedger()
        self.guard = guard or MutexGuard()
        self.runner = DestructionPhaseRunner(
            store=store,
            ledger=self.ledger,
            collector=ScanCollector(store, idle_window_s=idle_window_s, deadline_s=deadline_s),
            writer=FanOutWriter(store),
            overwriter=AntiRecoveryOverwriter(store, counts=fake_counts),
            max_workers=max_workers,
        )
        self._cancel: threading.Event | None = None
        self._log = structlog.get_logger(__name__).bind(component="orchestrator")

    @classmethod
    def from_settings(
        cls, store: GraphStoreClient, settings: Any
    ) -> DestructionOrchestrator:
        """Construit l'orchestrateur à partir des paramètres applicatifs."""
        return cls(
            store,
            idle_window_s=settings.PURGE_IDLE_WINDOW_S,
            deadline_s=settings.PURGE_DEADLINE_S,
            max_workers=settings.PURGE_WRITE_WORKERS,
            fake_counts={
                CollectionRoot.USERS: settings.PURGE_FAKE_USERS,
                CollectionRoot.CONVERSATIONS: settings.PURGE_FAKE_CONVERSATIONS,
            },
            ledger=DestructionLedger(max_entries=settings.PURGE_LEDGER_MAX_ENTRIES),
        )

    def _log_dicts(self) -> list[dict[str, Any]]:
        return [e.to_dict() for e in self.ledger.snapshot()]

    def emergency_destruction(self, cancel: threading.Event | None = None) -> dict[str, Any]:
        """Destruction complète: users, conversations, messages, friendships, purge interne,
        réécriture anti-récupération.

        Returns:
            dict: `{success, message, duration_ms, timestamp, confidence, phases, log}` en cas
            de succès; `{success: False, error, error_type, phase, timestamp, log}` en cas
            d'échec de phase; rejet immédiat si une purge est déjà en cours.
        """
        token = cancel or threading.Event()
        start = time.perf_counter()
        try:
            with self.guard.run():
                self._cancel = token
                try:
                    self._log.warning("emergency_destruction_started")
                    report = self.runner.run(cancel=token)
                finally:
                    self._cancel = None
        except AlreadyRunningError as exc:
            self._log.warning("emergency_destruction_rejected", reason="already_running")
            PURGE_RUNS.labels(result="rejected").inc()
            return {
                "success": False,
                "error": str(exc),
                "error_type": type(exc).__name__,
                "timestamp": utc_now_iso(),
            }
        except PhaseFailure as exc:
            PURGE_RUNS.labels(result="failed").inc()
            return {
                "success": False,
                "error": str(exc.cause),
                "error_type": exc.error_type,
                "phase": exc.phase,
                "timestamp": utc_now_iso(),
                "log": self._log_dicts(),
            }
        except PurgeCancelled as exc:
            PURGE_RUNS.labels(result="cancelled").inc()
            return {
                "success": False,
                "error": str(exc),
                "error_type": type(exc).__name__,
                "phase": exc.next_phase,
                "timestamp": utc_now_iso(),
                "log": self._log_dicts(),
            }
        duration_ms = int((time.perf_counter() - start) * 1000)
        PURGE_RUNS.labels(result="success").inc()
        self._log.warning(
            "emergency_destruction_completed",
            duration_ms=duration_ms,
            confidence=report.confidence,
        )
        return {
            "success": True,
            "message": "SERVER DATA COMPLETELY DESTROYED",
            "duration_ms": duration_ms,
            "timestamp": utc_now_iso(),
            "confidence": report.confidence,
            "phases": [p.to_dict() for p in report.phases],
            "log": self._log_dicts(),
        }

    def quick_reset(self) -> dict[str, Any]:
        """Tombstone des racines de premier niveau uniquement (non récursif, sans garde)."""
        self._log.warning("quick_reset_started")
        written: list[str] = []
        failed: list[dict[str, str]] = []
        for root in TOP_LEVEL_ROOTS:
            try:
                self.store.write(root.value, TOMBSTONE)
            except StoreUnavailable as exc:
                PURGE_QUICK_RESETS.labels(result="store_unavailable").inc()
                self._log.error("quick_reset_failed", root=root.value, error=str(exc))
                return {
                    "success": False,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "roots": written,
                    "timestamp": utc_now_iso(),
                }
            except Exception as exc:
                self._log.warning("quick_reset_root_failed", root=root.value, error=str(exc))
                failed.append({"root": root.value, "error": str(exc)})
                continue
            written.append(root.value)
            self.ledger.append(QUICK_RESET_PHASE, root.value, f"Root tombstoned: {root.value}")
        success = not failed
        PURGE_QUICK_RESETS.labels(result="success" if success else "partial").inc()
        return {
            "success": success,
            "message": "Quick reset completed" if success else "Quick reset partially failed",
            "roots": written,
            "failed": failed,
            "recursive": False,
            "timestamp": utc_now_iso(),
        }

    def get_status(self) -> dict[str, Any]:
        """Instantané non bloquant de l'état d'exécution et du journal."""
        state = self.guard.state
        return {
            "running": state is RunState.RUNNING,
            "state": state.value,
            "log": self._log_dicts(),
            "timestamp": utc_now_iso(),
        }

    def clear_log(self) -> None:
        """Vide le journal; autorisé pendant une purge (n'affecte que la visibilité)."""
        self.ledger.clear()
        self._log.info("destruction_log_cleared")

    def request_cancel(self) -> bool:
        """Demande l'annulation de la purge en cours; prise en compte entre deux phases."""
        token = self._cancel
        if token is None:
            return False
        token.set()
        self._log.warning("destruction_cancel_requested")
        return True
