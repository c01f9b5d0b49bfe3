"""
Application error taxonomy and the FastAPI handlers that render it.

Services raise the ``AppError`` subclasses below and never build HTTP
responses themselves.  Every error leaves the API in one shape::

    {"status": "error", "message": "...", "error": "<code>"}
"""
import logging

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 400
    code = "app_error"
    detail = "Application error"

    def __init__(self, detail: str | None = None, code: str | None = None):
        if detail is not None:
            self.detail = detail
        if code is not None:
            self.code = code
        super().__init__(self.detail)


class BadRequest(AppError):
    status_code = 400
    code = "bad_request"
    detail = "Bad request"


class Unauthorized(AppError):
    status_code = 401
    code = "unauthorized"
    detail = "Unauthorized"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    detail = "You are not allowed to perform this action"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    detail = "Resource not found"


class Conflict(AppError):
    status_code = 409
    code = "conflict"
    detail = "Resource already exists"


def _error_response(
    *,
    status_code: int,
    message: str,
    code: str,
    headers: dict | None = None,
    **extra,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message, "error": code, **extra},
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return _error_response(
        status_code=exc.status_code,
        message=exc.detail,
        code=exc.code,
        headers=headers,
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error_response(
        status_code=exc.status_code,
        message=detail,
        code="http_error",
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    return _error_response(
        status_code=400,
        message="Validation error",
        code="validation_error",
        errors=jsonable_encoder(exc.errors()),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    # A unique/PK race that slipped past the service-level existence checks.
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return _error_response(
        status_code=409,
        message="Resource already exists",
        code="conflict",
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(
        status_code=500,
        message="An unknown error occurred",
        code="internal_server_error",
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
