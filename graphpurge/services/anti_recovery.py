"""Réécriture anti-récupération après les phases de tombstones.

Des enregistrements factices, explicitement marqués `fake=True` / `overwritten=True`, occupent
l'espace d'identifiants des collections purgées afin qu'une copie non tombstonée provenant d'un
réplica obsolète ne soit pas prise pour une donnée vivante. C'est une dissuasion probabiliste:
la garantie de suppression repose uniquement sur les tombstones.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog

from graphpurge.app.metrics import PURGE_FAKE_RECORDS
from graphpurge.domain.collections import CollectionRoot, child_path, personal_root
from graphpurge.domain.errors import StoreUnavailable
from graphpurge.infra.graph.base import GraphStoreClient

DEFAULT_FAKE_COUNTS: dict[CollectionRoot, int] = {
    CollectionRoot.USERS: 5,
    CollectionRoot.CONVERSATIONS: 3,
}
FAKE_USER_MESSAGE = "This is fake data created during server destruction"
_MIN_STEP_S = 1e-6


@dataclass(frozen=True)
class FakeRecord:
    """Enregistrement synthétique et ses chemins d'écriture."""

    root: CollectionRoot
    record_id: str
    created_at: float
    value: dict[str, Any]
    paths: tuple[str, ...]
    failed_paths: tuple[str, ...] = field(default_factory=tuple)


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, UTC).isoformat()


def _fake_user(record_id: str, index: int, ts: float) -> dict[str, Any]:
    return {
        "nickname": f"Fake User {index}",
        "pub": record_id,
        "fake": True,
        "overwritten": True,
        "timestamp": _iso(ts),
        "message": FAKE_USER_MESSAGE,
    }


def _fake_conversation(record_id: str, index: int, ts: float) -> dict[str, Any]:
    return {
        "id": record_id,
        "participants": [f"fake_user_{index}", f"fake_user_{index + 1}"],
        "fake": True,
        "overwritten": True,
        "timestamp": _iso(ts),
    }


def _fake_generic(record_id: str, index: int, ts: float) -> dict[str, Any]:
    return {"id": record_id, "fake": True, "overwritten": True, "timestamp": _iso(ts)}


_ID_PREFIX: dict[CollectionRoot, str] = {
    CollectionRoot.USERS: "fake_user",
    CollectionRoot.CONVERSATIONS: "fake_conv",
    CollectionRoot.MESSAGES: "fake_msg",
    CollectionRoot.FRIENDSHIPS: "fake_friendship",
    CollectionRoot.PROFILES: "fake_profile",
}
_BUILDERS: dict[CollectionRoot, Callable[[str, int, float], dict[str, Any]]] = {
    CollectionRoot.USERS: _fake_user,
    CollectionRoot.CONVERSATIONS: _fake_conversation,
}


class AntiRecoveryOverwriter:
    """Écrit un nombre configurable d'enregistrements factices par collection."""

    def __init__(
        self,
        store: GraphStoreClient,
        counts: dict[CollectionRoot, int] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.counts = dict(DEFAULT_FAKE_COUNTS if counts is None else counts)
        self._clock = clock
        self._log = structlog.get_logger(__name__).bind(component="anti_recovery")

    def _paths(self, root: CollectionRoot, record_id: str) -> tuple[str, ...]:
        if root is CollectionRoot.USERS:
            return (child_path(root.value, record_id), personal_root(record_id))
        return (child_path(root.value, record_id),)

    def _write(self, path: str, value: dict[str, Any]) -> bool:
        try:
            self.store.write(path, value)
        except StoreUnavailable:
            raise
        except Exception as exc:
            self._log.warning("fake_record_write_failure", path=path, error=str(exc))
            return False
        return True

    def overwrite(
        self, root: CollectionRoot, count: int, not_before: float | None = None
    ) -> list[FakeRecord]:
        """Écrit `count` enregistrements factices sous `root`.

        Chaque horodatage est strictement postérieur à `not_before` (fin de la phase de
        tombstones correspondante). Les identifiants combinent l'instant courant et un index.
        """
        if count < 0:
            raise ValueError("count must be >= 0")
        builder = _BUILDERS.get(root, _fake_generic)
        prefix = _ID_PREFIX[root]
        records: list[FakeRecord] = []
        last = not_before if not_before is not None else float("-inf")
        for i in range(count):
            ts = max(self._clock(), last + _MIN_STEP_S)
            last = ts
            record_id = f"{prefix}_{int(ts * 1000)}_{i}"
            value = builder(record_id, i, ts)
            paths = self._paths(root, record_id)
            failed = tuple(p for p in paths if not self._write(p, value))
            records.append(
                FakeRecord(
                    root=root,
                    record_id=record_id,
                    created_at=ts,
                    value=value,
                    paths=paths,
                    failed_paths=failed,
                )
            )
            PURGE_FAKE_RECORDS.labels(root=root.value).inc()
        self._log.info("fake_records_written", root=root.value, count=len(records))
        return records

    def overwrite_all(
        self, not_before: dict[CollectionRoot, float] | None = None
    ) -> list[FakeRecord]:
        """Applique les comptes configurés, collection par collection."""
        not_before = not_before or {}
        out: list[FakeRecord] = []
        for root, count in self.counts.items():
            out.extend(self.overwrite(root, count, not_before.get(root)))
        return out
