"""
Endpoint de santé pour vérifier la disponibilité de l'API et du store graphe.

Expose `/health` pour signaler l'état général de l'application, du stockage et des purges.
"""


from fastapi import APIRouter

from graphpurge.core.container import container

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Vérifie la disponibilité de l'API et le backend de stockage."""
    return {
        "status": "ok",
        "storage": getattr(container, "storage_backend", "unknown"),
        "redis_url": bool(getattr(container.settings, "GRAPH_REDIS_URL", None)),
        "destruction_state": container.orchestrator.guard.state.value,
    }
