"""Configuration de test pour pytest avec gestion des chemins.

Ce module configure pytest pour résoudre les imports `graphpurge` en ajoutant la racine du projet
au sys.path, et fournit des fixtures de store graphe et d'orchestrateur aux délais courts.
"""

import os
import sys

import pytest

# Ensure project root is on sys.path so that
# imports like `from graphpurge...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from graphpurge.services.orchestrator import DestructionOrchestrator  # noqa: E402
from tests.fakes import FAST_DEADLINE_S, FAST_IDLE_S, RecordingGraphStore  # noqa: E402


@pytest.fixture
def store() -> RecordingGraphStore:
    """Store mémoire qui enregistre chaque écriture."""
    return RecordingGraphStore()


@pytest.fixture
def orchestrator(store: RecordingGraphStore) -> DestructionOrchestrator:
    """Orchestrateur aux fenêtres de scan courtes pour des tests rapides."""
    return DestructionOrchestrator(
        store, idle_window_s=FAST_IDLE_S, deadline_s=FAST_DEADLINE_S, max_workers=4
    )
