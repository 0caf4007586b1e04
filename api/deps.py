"""Shared route dependencies and the error envelope."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from errors import (
    AuthorizationError,
    GatewayError,
    IntegrityViolation,
    NotFoundError,
    ProgressError,
    TransientNetworkError,
    ValidationError,
)
from models.entities import Actor
from services.workspace import Workspace, get_workspace

logger = logging.getLogger(__name__)

__all__ = ["get_workspace", "register_error_handlers", "require_actor", "Workspace"]

_STATUS_BY_ERROR: tuple[tuple[type[ProgressError], int], ...] = (
    (ValidationError, 400),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (IntegrityViolation, 409),
    (TransientNetworkError, 503),
    (GatewayError, 502),
)


def require_actor(request: Request) -> Actor:
    """The signed-in actor placed on ``request.state`` by the session middleware."""
    actor = getattr(request.state, "actor", None)
    if actor is None:
        raise HTTPException(status_code=401, detail="Sign in required")
    return actor


def status_for(exc: ProgressError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ProgressError)
    async def progress_error_handler(request: Request, exc: ProgressError):
        status = status_for(exc)
        if status >= 500:
            logger.warning("%s %s → %d: %s", request.method, request.url.path, status, exc.message)
        return JSONResponse(
            status_code=status,
            content={
                "success": False,
                "error": exc.message,
                "field": getattr(exc, "field", "") or None,
            },
        )
