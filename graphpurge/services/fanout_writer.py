"""Écriture des tombstones sur l'ensemble des chemins dénormalisés d'une entité.

Le calcul du write-set s'appuie uniquement sur `FANOUT_LAYOUT`: les phases ne connaissent pas
la disposition du stockage. Les écritures sont émises (fire-and-forget), jamais acquittées.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from graphpurge.domain.collections import FANOUT_LAYOUT, CollectionRoot
from graphpurge.domain.errors import PerEntityWriteFailure, StoreUnavailable
from graphpurge.infra.graph.base import TOMBSTONE, GraphStoreClient


@dataclass(frozen=True)
class FanOutReport:
    """Chemins émis et échecs par chemin pour une entité."""

    entity_id: str
    root: CollectionRoot
    issued: tuple[str, ...]
    failures: tuple[PerEntityWriteFailure, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.failures


class FanOutWriter:
    """Émet un tombstone par chemin du write-set d'une entité."""

    def __init__(
        self,
        store: GraphStoreClient,
        layout: dict[CollectionRoot, tuple[str, ...]] | None = None,
    ) -> None:
        self.store = store
        self.layout = layout or FANOUT_LAYOUT
        self._log = structlog.get_logger(__name__).bind(component="fanout_writer")

    def write_set(self, entity_id: str, root: CollectionRoot) -> tuple[str, ...]:
        """Chemins concrets représentant `entity_id` dans la collection `root`."""
        if not entity_id:
            raise ValueError("entity_id must be non-empty")
        try:
            templates = self.layout[root]
        except KeyError as exc:
            raise ValueError(f"no fan-out layout for collection {root!r}") from exc
        return tuple(t.format(id=entity_id) for t in templates)

    def tombstone(self, entity_id: str, root: CollectionRoot) -> FanOutReport:
        """Émet les tombstones; un échec par chemin n'interrompt pas les suivants.

        `StoreUnavailable` n'est pas un échec par entité: il est propagé.
        """
        issued: list[str] = []
        failures: list[PerEntityWriteFailure] = []
        for path in self.write_set(entity_id, root):
            try:
                self.store.write(path, TOMBSTONE)
            except StoreUnavailable:
                raise
            except Exception as exc:
                failure = PerEntityWriteFailure(entity_id, path, exc)
                failures.append(failure)
                self._log.warning(
                    "per_entity_write_failure",
                    entity_id=entity_id,
                    path=path,
                    error=str(exc),
                    exception_type=type(exc).__name__,
                )
                continue
            issued.append(path)
        return FanOutReport(
            entity_id=entity_id, root=root, issued=tuple(issued), failures=tuple(failures)
        )
