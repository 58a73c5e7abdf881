"""
Error taxonomy and FastAPI exception handlers.

Services raise the `AppError` subclasses below; the handlers registered by
`register_exception_handlers` render them as ``{"message": ..., **extra}``
with the matching HTTP status.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = {k: v for k, v in extra.items() if v is not None}
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"message": self.message, **self.extra}


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[list[dict]] = None, **extra: Any) -> None:
        super().__init__(message, errors=errors or None, **extra)
        self.errors = errors or []


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Resource already exists"


class PayloadTooLargeError(AppError):
    status_code = 413
    default_message = "Payload too large"


class TooManyRequestsError(AppError):
    status_code = 429
    default_message = "Too many requests"

    def __init__(self, message: Optional[str] = None, *, retry_after: float = 1.0, **extra: Any) -> None:
        super().__init__(message, **extra)
        self.headers = {"Retry-After": str(max(1, int(retry_after)))}


class InternalError(AppError):
    status_code = 500
    default_message = "Internal server error"


def _format_extra(extra: dict | None) -> str:
    if not extra:
        return ""
    parts: list[str] = []
    for key, value in extra.items():
        if value is None:
            continue
        parts.append(f"{key}={value}")
    return f" {' '.join(parts)}" if parts else ""


def log_exception(logger: logging.Logger, msg: str, *, extra: dict | None = None, exc: Exception | None = None) -> None:
    """
    Log an exception with context. Uses logger.exception for stack traces.
    """
    suffix = _format_extra(extra)
    if exc is not None:
        logger.error(f"{msg}{suffix}: {exc}", exc_info=exc)
        return
    logger.exception(f"{msg}{suffix}")


def _field_errors(exc: RequestValidationError) -> list[dict]:
    errors: list[dict] = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in {"body", "query", "path"}]
        errors.append({"field": ".".join(loc) or None, "message": err.get("msg", "Invalid value")})
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    logger = logging.getLogger("errors")

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            log_exception(logger, "Request failed", extra={"path": request.url.path}, exc=exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        payload = ValidationError(errors=_field_errors(exc)).to_payload()
        return JSONResponse(status_code=400, content=payload)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        log_exception(logger, "Unhandled error", extra={"path": request.url.path, "method": request.method}, exc=exc)
        return JSONResponse(status_code=500, content=InternalError().to_payload())
