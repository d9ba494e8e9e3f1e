# Wobulezi - error taxonomy and request-boundary handlers
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_body(self) -> dict:
        return {"error": self.message}


class Unauthenticated(AppError):
    status_code = 401
    default_message = "Not authenticated"


class Forbidden(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, message: str | None = None, fields: dict[str, str] | None = None):
        super().__init__(message)
        self.fields = fields or {}

    def to_body(self) -> dict:
        body = super().to_body()
        if self.fields:
            body["fields"] = self.fields
        return body


class Conflict(AppError):
    status_code = 409
    default_message = "Conflict"


class Internal(AppError):
    pass


def _fields_from_validation(exc: RequestValidationError) -> dict[str, str]:
    fields: dict[str, str] = {}
    for error in exc.errors():
        name = ".".join(str(x) for x in error.get("loc", []) if x not in ("body", "query", "path"))
        fields.setdefault(name or "request", error.get("msg") or "Invalid input.")
    return fields


UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """Duplicate keys are conflicts; NOT NULL, foreign key and check failures are bad input."""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is not None:
        return code == UNIQUE_VIOLATION
    text = str(orig).lower()
    return "unique constraint" in text or "duplicate key" in text


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if isinstance(exc, Internal):
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
            return JSONResponse(status_code=500, content={"error": Internal.default_message})
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        body = ValidationError(fields=_fields_from_validation(exc)).to_body()
        return JSONResponse(status_code=400, content=body)

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning("%s %s hit a constraint: %s", request.method, request.url.path, exc.orig)
        if is_unique_violation(exc):
            return JSONResponse(status_code=409, content={"error": "Resource already exists"})
        body = ValidationError("Invalid references or missing required values").to_body()
        return JSONResponse(status_code=400, content=body)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": Internal.default_message})
