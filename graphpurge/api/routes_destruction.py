# ============================================================
# Module : graphpurge/api/routes_destruction.py
# Objet  : Endpoints d'administration /admin/destruction/*.
# Notes  : L'authentification de l'appelant est assurée en amont.
# ============================================================
"""Routes d'administration des purges destructives.

Chaque route délègue à l'orchestrateur du conteneur et renvoie sa structure JSON telle quelle;
seuls les rejets et échecs sont traduits en codes HTTP.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from graphpurge.apigw.errors import ErrorCodes, create_error_response, extract_trace_id
from graphpurge.core.container import container
from graphpurge.core.http_constants import (
    HTTP_ACCEPTED,
    HTTP_BAD_GATEWAY,
    HTTP_CONFLICT,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_NO_CONTENT,
)

router = APIRouter(prefix="/admin/destruction", tags=["destruction"])

_FAILURE_STATUS = {
    "StoreUnavailable": HTTP_BAD_GATEWAY,
    "PurgeCancelled": HTTP_CONFLICT,
}


@router.post("/emergency")
def emergency(request: Request):
    """Lance une destruction complète (bloquant jusqu'à la fin des six phases)."""
    result = container.orchestrator.emergency_destruction()
    if result["success"]:
        return result
    error_type = result.get("error_type")
    if error_type == "AlreadyRunningError":
        return create_error_response(
            status_code=HTTP_CONFLICT,
            code=ErrorCodes.ALREADY_RUNNING,
            message=result["error"],
            trace_id=extract_trace_id(request),
        )
    status_code = _FAILURE_STATUS.get(error_type or "", HTTP_INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=status_code, content=result)


@router.post("/quick-reset")
def quick_reset(request: Request):
    """Tombstone non récursif des racines de premier niveau."""
    result = container.orchestrator.quick_reset()
    if result["success"]:
        return result
    if result.get("error_type") == "StoreUnavailable":
        return create_error_response(
            status_code=HTTP_BAD_GATEWAY,
            code=ErrorCodes.STORE_UNAVAILABLE,
            message=result["error"],
            trace_id=extract_trace_id(request),
            details={"roots": result.get("roots", [])},
        )
    return JSONResponse(status_code=HTTP_INTERNAL_SERVER_ERROR, content=result)


@router.get("/status")
def status():
    """Instantané de l'état d'exécution et du journal."""
    return container.orchestrator.get_status()


@router.delete("/log", status_code=HTTP_NO_CONTENT)
def clear_log():
    """Vide le journal de destruction."""
    container.orchestrator.clear_log()
    return Response(status_code=HTTP_NO_CONTENT)


@router.post("/cancel", status_code=HTTP_ACCEPTED)
def cancel():
    """Demande l'annulation de la purge en cours (effective entre deux phases)."""
    return {"cancel_requested": container.orchestrator.request_cancel()}
