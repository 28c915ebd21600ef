# ============================================================
# Module : graphpurge/services/phase_runner.py
# Objet  : Exécution séquentielle des six phases de destruction.
# Invariants :
#  - Deux phases ne s'exécutent jamais en parallèle.
#  - Pour une phase de scan: nombre émis == nombre énuméré.
#  - Le journal suit l'ordre d'énumération.
# ============================================================
"""Exécuteur des phases de destruction.

Ordre: users → conversations → messages → friendships → internal_store_clear →
anti_recovery_overwrite. Dans une phase, les tombstones sont dispatchés sur un pool borné
pendant que le scan se poursuit. Une exception échappant à une phase est enveloppée dans
`PhaseFailure` et interrompt les phases suivantes; rien n'est annulé côté store.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from typing import Any

import structlog

from graphpurge.app.metrics import PURGE_PHASE_LATENCY, PURGE_TOMBSTONES, PURGE_WRITE_FAILURES
from graphpurge.domain.collections import PHASE_ORDER, SCAN_PHASES, CollectionRoot, Phase
from graphpurge.domain.errors import PhaseFailure, PurgeCancelled
from graphpurge.domain.ledger import DestructionLedger
from graphpurge.infra.graph.base import INTERNAL_CLEAR_HOOKS, GraphStoreClient
from graphpurge.services.anti_recovery import AntiRecoveryOverwriter
from graphpurge.services.fanout_writer import FanOutReport, FanOutWriter
from graphpurge.services.scan_collector import ScanCollector, ScanTrigger

CONFIDENT = "confident"
DEADLINE_FORCED = "deadline_forced"

_FAKE_NOUN: dict[CollectionRoot, str] = {
    CollectionRoot.USERS: "user",
    CollectionRoot.CONVERSATIONS: "conversation",
    CollectionRoot.MESSAGES: "message",
    CollectionRoot.FRIENDSHIPS: "friendship",
    CollectionRoot.PROFILES: "profile",
}


@dataclass
class PhaseReport:
    """Bilan d'une phase."""

    phase: Phase
    enumerated: int = 0
    issued: int = 0
    failures: int = 0
    skipped: int = 0
    trigger: ScanTrigger | None = None
    started_at: float = 0.0
    completed_at: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["phase"] = self.phase.value
        out["trigger"] = self.trigger.value if self.trigger else None
        return out


@dataclass
class RunReport:
    """Bilan d'une destruction complète."""

    phases: list[PhaseReport] = field(default_factory=list)
    started_at: float = 0.0
    duration_ms: int = 0

    @property
    def confidence(self) -> str:
        """`confident` si chaque scan s'est terminé sur inactivité, sinon `deadline_forced`."""
        forced = any(p.trigger is ScanTrigger.DEADLINE for p in self.phases)
        return DEADLINE_FORCED if forced else CONFIDENT


class DestructionPhaseRunner:
    """Enchaîne les phases en s'appuyant sur ScanCollector et FanOutWriter."""

    def __init__(
        self,
        store: GraphStoreClient,
        ledger: DestructionLedger,
        collector: ScanCollector,
        writer: FanOutWriter,
        overwriter: AntiRecoveryOverwriter,
        max_workers: int = 8,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.store = store
        self.ledger = ledger
        self.collector = collector
        self.writer = writer
        self.overwriter = overwriter
        self.max_workers = max_workers
        self._clock = clock
        self._log = structlog.get_logger(__name__).bind(component="phase_runner")

    def run(self, cancel: threading.Event | None = None) -> RunReport:
        """Exécute toutes les phases dans l'ordre.

        Raises:
            PhaseFailure: une phase a échoué; les suivantes ne sont pas exécutées.
            PurgeCancelled: annulation constatée entre deux phases.
        """
        run = RunReport(started_at=self._clock())
        covered: set[str] = set()
        for phase in PHASE_ORDER:
            if cancel is not None and cancel.is_set():
                self._log.warning("destruction_cancelled", next_phase=phase.value)
                raise PurgeCancelled(phase.value)
            self._log.info("phase_started", phase=phase.value)
            started = time.perf_counter()
            try:
                report = self._run_phase(phase, run, covered)
            except Exception as exc:
                self._log.error(
                    "phase_failed",
                    phase=phase.value,
                    error=str(exc),
                    exception_type=type(exc).__name__,
                )
                raise PhaseFailure(phase.value, exc) from exc
            finally:
                PURGE_PHASE_LATENCY.labels(phase=phase.value).observe(
                    time.perf_counter() - started
                )
            run.phases.append(report)
            self._log.info(
                "phase_completed",
                phase=phase.value,
                enumerated=report.enumerated,
                issued=report.issued,
                failures=report.failures,
                trigger=report.trigger.value if report.trigger else None,
            )
        run.duration_ms = int((self._clock() - run.started_at) * 1000)
        return run

    def _run_phase(self, phase: Phase, run: RunReport, covered: set[str]) -> PhaseReport:
        if phase in SCAN_PHASES:
            root, label = SCAN_PHASES[phase]
            skip = covered if phase is Phase.MESSAGES else frozenset()
            report, ids = self._run_scan_phase(phase, root, label, skip)
            if phase is Phase.CONVERSATIONS:
                covered.update(ids)
            return report
        if phase is Phase.INTERNAL_STORE_CLEAR:
            return self._clear_internal_store()
        return self._overwrite(run)

    def _run_scan_phase(
        self, phase: Phase, root: CollectionRoot, label: str, skip: set[str] | frozenset[str]
    ) -> tuple[PhaseReport, list[str]]:
        report = PhaseReport(phase=phase, started_at=self._clock())
        ids: list[str] = []
        scan = self.collector.enumerate(root)
        stream = iter(scan)
        pending: deque[tuple[str, Future[FanOutReport]]] = deque()
        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix=f"purge-{phase.value}"
        ) as pool:
            try:
                for entity_id in stream:
                    if entity_id in skip:
                        report.skipped += 1
                        continue
                    report.enumerated += 1
                    ids.append(entity_id)
                    pending.append(
                        (entity_id, pool.submit(self.writer.tombstone, entity_id, root))
                    )
                    report.issued += 1
                    self.ledger.append(
                        phase.value, entity_id, f"{label} destroyed: {entity_id}"
                    )
                    self._drain(pending, report, block=False)
                self._drain(pending, report, block=True)
            except BaseException:
                stream.close()
                for _, fut in pending:
                    fut.cancel()
                raise
        report.trigger = scan.trigger
        report.completed_at = self._clock()
        return report, ids

    def _drain(
        self,
        pending: deque[tuple[str, Future[FanOutReport]]],
        report: PhaseReport,
        block: bool,
    ) -> None:
        # Head-of-line only, so failure entries follow enumeration order
        while pending and (block or pending[0][1].done()):
            entity_id, fut = pending.popleft()
            fan = fut.result()
            phase = report.phase.value
            report.failures += len(fan.failures)
            PURGE_TOMBSTONES.labels(phase=phase).inc(len(fan.issued))
            for failure in fan.failures:
                PURGE_WRITE_FAILURES.labels(phase=phase).inc()
                self.ledger.append(phase, entity_id, f"Tombstone failed: {failure.path}")

    def _clear_internal_store(self) -> PhaseReport:
        phase = Phase.INTERNAL_STORE_CLEAR
        report = PhaseReport(phase=phase, started_at=self._clock())
        for hook_name in INTERNAL_CLEAR_HOOKS:
            hook = getattr(self.store, hook_name, None)
            if not callable(hook):
                continue
            report.enumerated += 1
            try:
                hook()
            except Exception as exc:
                report.failures += 1
                self._log.warning(
                    "internal_store_clear_failed", hook=hook_name, error=str(exc)
                )
                continue
            report.issued += 1
            self.ledger.append(phase.value, hook_name, f"Internal store cleared: {hook_name}")
        if report.enumerated == 0:
            self._log.info("internal_store_clear_skipped", reason="no hooks exposed")
        report.completed_at = self._clock()
        return report

    def _overwrite(self, run: RunReport) -> PhaseReport:
        phase = Phase.ANTI_RECOVERY_OVERWRITE
        report = PhaseReport(phase=phase, started_at=self._clock())
        not_before = {
            SCAN_PHASES[p.phase][0]: p.completed_at for p in run.phases if p.phase in SCAN_PHASES
        }
        for record in self.overwriter.overwrite_all(not_before):
            report.enumerated += 1
            report.issued += 1
            report.failures += len(record.failed_paths)
            noun = _FAKE_NOUN[record.root]
            self.ledger.append(
                phase.value, record.record_id, f"Fake {noun} created: {record.record_id}"
            )
            for path in record.failed_paths:
                self.ledger.append(phase.value, record.record_id, f"Fake write failed: {path}")
        report.completed_at = self._clock()
        return report
