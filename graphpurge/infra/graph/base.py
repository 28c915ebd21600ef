"""Contrat du client de store graphe consommé par l'orchestrateur.

Le store est répliqué et fusionne les écritures en last-write-wins: une suppression s'exprime
par l'écriture du sentinel `TOMBSTONE`, jamais par un retrait physique. Il n'existe ni signal
de fin d'énumération, ni acquittement d'écriture.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

ChildCallback = Callable[[Any, str], None]
Unsubscribe = Callable[[], None]


class _Tombstone:
    """Sentinel "absent" value; compares equal only to itself."""

    _instance: _Tombstone | None = None

    def __new__(cls) -> _Tombstone:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "TOMBSTONE"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):  # type: ignore[no-untyped-def]
        return (_Tombstone, ())


TOMBSTONE = _Tombstone()


def is_tombstone(value: Any) -> bool:
    """Vrai pour le sentinel et pour `None` (forme sérialisée d'un tombstone)."""
    return value is TOMBSTONE or value is None


@runtime_checkable
class GraphStoreClient(Protocol):
    """Client asynchrone minimal d'un store graphe répliqué."""

    def subscribe_children(self, path: str, callback: ChildCallback) -> Unsubscribe:
        """Appelle `callback(value, key)` pour chaque enfant connu puis pour chaque enfant répliqué.

        Aucun évènement de fin n'est émis. Renvoie une fonction de désabonnement.
        """

    def write(self, path: str, value: Any) -> None:
        """Écriture fire-and-forget d'une valeur ou de `TOMBSTONE`."""


# Optional low-level hooks a store may expose, called best-effort during a full purge
INTERNAL_CLEAR_HOOKS: tuple[str, ...] = ("clear_store", "clear_disk")
