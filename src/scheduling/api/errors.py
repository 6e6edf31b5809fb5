"""Map domain exceptions to HTTP responses.

Every error body has the same shape: ``{"error": <code>, "detail": <message>}``
plus ``field`` for validation errors.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from scheduling.domain.errors import (
    ActionNotAvailableError,
    DeliveryValidationError,
    NotFoundError,
    PermissionDeniedError,
    StaleDeliveryError,
    StoreError,
    UnknownActorError,
)

logger = structlog.get_logger()


def _error(status_code: int, code: str, detail: str, **extra: object) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": code, "detail": detail, **extra},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers for the scheduling exception hierarchy on *app*."""

    @app.exception_handler(DeliveryValidationError)
    async def validation_error(request: Request, exc: DeliveryValidationError) -> JSONResponse:
        return _error(422, "validation_error", str(exc), field=exc.field)

    @app.exception_handler(ValidationError)
    async def model_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        return _error(422, "validation_error", str(first.get("msg", exc)), field=field)

    @app.exception_handler(ActionNotAvailableError)
    async def action_not_available(request: Request, exc: ActionNotAvailableError) -> JSONResponse:
        return _error(409, "action_not_available", str(exc))

    @app.exception_handler(StaleDeliveryError)
    async def stale_delivery(request: Request, exc: StaleDeliveryError) -> JSONResponse:
        return _error(409, "stale_delivery", str(exc))

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, "not_found", str(exc))

    @app.exception_handler(PermissionDeniedError)
    async def permission_denied(request: Request, exc: PermissionDeniedError) -> JSONResponse:
        return _error(403, "permission_denied", str(exc))

    @app.exception_handler(UnknownActorError)
    async def unknown_actor(request: Request, exc: UnknownActorError) -> JSONResponse:
        return _error(401, "unknown_actor", str(exc))

    @app.exception_handler(StoreError)
    async def store_unavailable(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("request_store_error", path=request.url.path, error=str(exc))
        return _error(503, "store_unavailable", "Temporary failure, please try again")
