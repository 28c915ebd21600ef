"""Taxonomie d'erreurs de l'orchestrateur de purge.

- AlreadyRunningError: rejet par le garde d'exécution, aucun effet de bord.
- PerEntityWriteFailure: un chemin du fan-out a échoué; journalisé, la purge continue.
- PhaseFailure: erreur inattendue échappant à une phase; les phases suivantes sont annulées.
- StoreUnavailable: erreur de connectivité du store; remontée à l'appelant, jamais retentée.
"""

from __future__ import annotations


class GraphPurgeError(Exception):
    """Base class for purge orchestration errors."""


class AlreadyRunningError(GraphPurgeError):
    """Raised when a destructive run is requested while another one is running."""

    def __init__(self, message: str = "Destruction already in progress") -> None:
        super().__init__(message)


class StoreUnavailable(GraphPurgeError):
    """Connectivity error reported by a graph store adapter."""


class PerEntityWriteFailure(GraphPurgeError):
    """One path of an entity's fan-out write set could not be written."""

    def __init__(self, entity_id: str, path: str, cause: BaseException) -> None:
        super().__init__(f"tombstone write failed for {path}: {cause}")
        self.entity_id = entity_id
        self.path = path
        self.cause = cause


class PhaseFailure(GraphPurgeError):
    """An unexpected error escaped a destruction phase."""

    def __init__(self, phase: str, cause: BaseException) -> None:
        super().__init__(f"phase {phase} failed: {cause}")
        self.phase = phase
        self.cause = cause

    @property
    def error_type(self) -> str:
        """Nom du type de la cause (ex: StoreUnavailable)."""
        return type(self.cause).__name__


class PurgeCancelled(GraphPurgeError):
    """The run was cancelled between two phases."""

    def __init__(self, next_phase: str) -> None:
        super().__init__(f"destruction cancelled before phase {next_phase}")
        self.next_phase = next_phase
