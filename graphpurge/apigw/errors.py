"""Gestion standardisée des erreurs API avec enveloppes d'erreur.

Ce module fournit des enveloppes d'erreur standardisées, des codes d'erreur cohérents et un
support pour le tracing des requêtes sur les routes d'administration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

log = structlog.get_logger(__name__)


@dataclass
class ErrorEnvelope:
    """Standard error envelope for API responses."""

    code: str
    message: str
    trace_id: str | None = None
    details: dict[str, Any] | None = None


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    trace_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    envelope = ErrorEnvelope(
        code=code,
        message=message,
        trace_id=trace_id,
        details=details,
    )

    log.error(
        "api_error",
        code=envelope.code,
        error_message=envelope.message,
        status_code=status_code,
        trace_id=envelope.trace_id,
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "code": envelope.code,
            "message": envelope.message,
            "trace_id": envelope.trace_id,
            **({"details": envelope.details} if envelope.details else {}),
        },
    )


def extract_trace_id(request: Request) -> str | None:
    """Extract trace ID from request headers or request state."""
    trace_id = request.headers.get("X-Trace-ID")
    if trace_id:
        return trace_id

    # Set by RequestIDMiddleware
    if hasattr(request.state, "request_id"):
        return request.state.request_id

    return None


class ErrorCodes:
    """Standard error codes for the API."""

    # Business logic errors
    ALREADY_RUNNING = "ALREADY_RUNNING"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
