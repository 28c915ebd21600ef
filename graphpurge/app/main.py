"""
Application principale FastAPI de l'hôte d'administration.

Responsabilités du module:
- Initialiser le logging structuré
- Construire l'application FastAPI avec son titre/debug
- Ajouter les middlewares (request id, métriques)
- Monter les routers (santé, destruction, métriques)
"""

from __future__ import annotations

from fastapi import FastAPI

from graphpurge.api.routes_destruction import router as destruction_router
from graphpurge.api.routes_health import router as health_router
from graphpurge.app.metrics import PrometheusMiddleware, metrics_router
from graphpurge.core.container import container
from graphpurge.core.logging import setup_logging
from graphpurge.middlewares.request_id import RequestIDMiddleware


def create_app() -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Étapes:
    - Configure le logging structuré (structlog)
    - Lit les paramètres d'exécution
    - Ajoute les middlewares utiles au debug/traçabilité
    - Publie les routes de santé, de destruction et de métriques
    """
    settings = container.settings
    setup_logging(settings.LOG_LEVEL)
    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(PrometheusMiddleware)
    app.include_router(health_router)
    app.include_router(destruction_router)
    app.include_router(metrics_router)
    return app


app = create_app()
