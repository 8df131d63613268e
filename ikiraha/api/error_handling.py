"""Exception handlers that render every failure as the JSON envelope."""

import asyncpg
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ikiraha.api.responses import error_envelope
from ikiraha.config import Settings
from ikiraha.models.response import FieldError
from ikiraha.services.errors import PersistenceError, ServiceError

logger = structlog.get_logger(__name__)

_HTTP_MESSAGES = {
    404: "Endpoint not found",
    405: "Method not allowed",
}


def _field_errors(exc: RequestValidationError) -> list[FieldError]:
    """Flatten pydantic errors into ``{field, message, value}`` entries."""
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        field = ".".join(loc) or "body"
        # Never echo passwords back
        if error.get("type") == "missing" or "password" in field.lower():
            value = None
        else:
            value = error.get("input")
        errors.append(FieldError(field=field, message=message, value=value))
    return errors


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Install handlers for service, validation, HTTP, storage and unexpected errors."""

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError):
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "service_error",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
        )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return error_envelope(exc.status_code, exc.message, exc.errors, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        if any(e.get("type") == "json_invalid" for e in exc.errors()):
            logger.warning("invalid_json", path=request.url.path)
            return error_envelope(400, "Invalid JSON format")

        errors = _field_errors(exc)
        logger.warning(
            "validation_error",
            path=request.url.path,
            method=request.method,
            fields=[e.field for e in errors],
        )
        return error_envelope(400, "Validation failed", errors)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        message = _HTTP_MESSAGES.get(exc.status_code) or str(exc.detail)
        return error_envelope(exc.status_code, message, headers=getattr(exc, "headers", None))

    async def handle_database_error(request: Request, exc: Exception):
        logger.error(
            "database_error",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        error = PersistenceError()
        return error_envelope(error.status_code, error.message)

    app.add_exception_handler(asyncpg.PostgresError, handle_database_error)
    app.add_exception_handler(asyncpg.InterfaceError, handle_database_error)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error_type=exc.__class__.__name__,
            exc_info=exc,
        )
        message = "Internal server error" if settings.is_production else str(exc)
        return error_envelope(500, message or "Internal server error")
