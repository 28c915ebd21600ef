"""
Métriques Prometheus pour l'orchestrateur de purge.

Ce module définit les métriques des purges (phases, tombstones, échecs d'écriture, déclencheurs
de fin de scan) ainsi que les métriques HTTP de l'hôte d'administration.
"""

import time

from fastapi import APIRouter, Request
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

metrics_router = APIRouter()

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "route", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Latency of HTTP requests", ["route"]
)

# Destruction runs
PURGE_RUNS = Counter(
    "purge_runs_total",
    "Emergency destruction runs by outcome",
    ["result"],
)
PURGE_PHASE_LATENCY = Histogram(
    "purge_phase_duration_seconds",
    "Duration of each destruction phase",
    ["phase"],
    buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)
PURGE_TOMBSTONES = Counter(
    "purge_tombstones_issued_total",
    "Tombstone writes issued (not acknowledged)",
    ["phase"],
)
PURGE_WRITE_FAILURES = Counter(
    "purge_write_failures_total",
    "Per-path tombstone write failures",
    ["phase"],
)
PURGE_SCAN_TRIGGER = Counter(
    "purge_scan_completions_total",
    "Scan completions by trigger (idle = confident, deadline = possibly incomplete)",
    ["root", "trigger"],
)
PURGE_FAKE_RECORDS = Counter(
    "purge_fake_records_total",
    "Synthetic anti-recovery records written",
    ["root"],
)
PURGE_QUICK_RESETS = Counter(
    "purge_quick_resets_total",
    "Quick (non-recursive) resets by outcome",
    ["result"],
)


@metrics_router.get("/metrics")
def metrics():
    """
    Expose les métriques Prometheus au format texte.

    Returns:
        Response: Réponse HTTP contenant les métriques au format Prometheus.
    """
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware Prometheus pour mesurer les métriques HTTP.

    Collecte les métriques de comptage des requêtes et de latence par route pour l'exposition
    Prometheus.
    """

    async def dispatch(self, request: Request, call_next):
        """Traite une requête HTTP et collecte les métriques."""
        start = time.perf_counter()
        response: Response = await call_next(request)
        route = request.scope.get("path", "unknown")
        REQUEST_COUNT.labels(request.method, route, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(route).observe(time.perf_counter() - start)
        return response
