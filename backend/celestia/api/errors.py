"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from celestia.moderation.domain.errors import (
    DependencyFailure,
    InvalidTransition,
    ModerationWorkflowError,
    NotFound,
    ValidationError,
)
from celestia.obs.logging import current_request_id

logger = logging.getLogger(__name__)

_WORKFLOW_STATUS: tuple[tuple[type[ModerationWorkflowError], int], ...] = (
    (NotFound, 404),
    (InvalidTransition, 409),
    (ValidationError, 422),
    (DependencyFailure, 503),
)


def get_request_id(request: Request, default: str = "unknown") -> str:
    rid = getattr(request.state, "request_id", None) or current_request_id()
    return rid or default


def status_for(exc: ModerationWorkflowError) -> int:
    for exc_type, status_code in _WORKFLOW_STATUS:
        if isinstance(exc, exc_type):
            return status_code
    return 400


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        payload = {"detail": exc.detail, "request_id": get_request_id(request)}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        payload = {"detail": "validation_error", "errors": exc.errors(), "request_id": get_request_id(request)}
        return JSONResponse(status_code=422, content=jsonable_encoder(payload))

    @app.exception_handler(ModerationWorkflowError)
    async def workflow_exc_handler(request: Request, exc: ModerationWorkflowError):  # type: ignore[override]
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("moderation dependency failure", extra={"code": exc.code, "path": request.url.path})
        payload = {"detail": exc.code, "request_id": get_request_id(request)}
        return JSONResponse(status_code=status_code, content=payload)
