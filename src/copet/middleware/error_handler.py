"""Global error handlers: every failure leaves as ``{"detail": ...}`` JSON."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from copet.simulation.errors import (
    ConcurrencyConflictError,
    CooldownActiveError,
    CoupleError,
    ImplausibleResultError,
    InvalidActionError,
    NotPetOwnerError,
    PetNotFoundError,
    RateLimitedError,
    SessionNotFoundError,
    SessionSealedError,
    SimulationError,
)

logger = structlog.get_logger()

STATUS_BY_ERROR: dict[type[SimulationError], int] = {
    InvalidActionError: 422,
    ImplausibleResultError: 422,
    PetNotFoundError: 404,
    SessionNotFoundError: 404,
    NotPetOwnerError: 403,
    CooldownActiveError: 429,
    ConcurrencyConflictError: 429,
    RateLimitedError: 429,
    SessionSealedError: 409,
    CoupleError: 409,
}


def simulation_error_response(exc: SimulationError) -> JSONResponse:
    """Map a domain error onto its HTTP status, body, and headers."""
    status = STATUS_BY_ERROR.get(type(exc), 400)
    detail: dict[str, object] = {"code": exc.code, "message": exc.message}
    headers: dict[str, str] = {}

    if isinstance(exc, CooldownActiveError):
        detail["accepted"] = False
        detail["reason"] = exc.code
        detail["cooldown_remaining_seconds"] = exc.remaining_seconds
        headers["Retry-After"] = str(exc.remaining_seconds)
    elif isinstance(exc, ConcurrencyConflictError):
        detail["retryable"] = True
        headers["Retry-After"] = str(exc.retry_after)
    elif isinstance(exc, RateLimitedError):
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(status_code=status, content={"detail": detail}, headers=headers or None)


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(SimulationError)
    async def simulation_exception_handler(request: Request, exc: SimulationError) -> JSONResponse:
        """Translate domain errors raised by the services."""
        logger.info("request_rejected", path=request.url.path, code=exc.code)
        return simulation_error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent JSON format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle validation errors with consistent JSON format."""
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": exc.errors()},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions. Never leaks internals."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
