"""
Application errors and the global error translator.

Handlers fail by raising ``ErrorResponse`` (or one of its named subclasses).
Everything that escapes a route, typed or not, is turned into the uniform
error envelope ``{"success": false, "error": <message>}`` by the handlers
registered in ``register_error_handlers``.
"""

from typing import Optional

from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from logging_config import get_logger

logger = get_logger(__name__)


class ErrorResponse(Exception):
    """An error carrying the message and HTTP status sent to the client."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFound(ErrorResponse):
    status_code = 404


class ValidationFailure(ErrorResponse):
    status_code = 400


class Unauthorized(ErrorResponse):
    status_code = 401


class UnprocessableUpload(ErrorResponse):
    status_code = 400


class UpstreamFailure(ErrorResponse):
    status_code = 500


def error_envelope(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc)
        messages.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return ", ".join(messages) or "Invalid request"


async def handle_error_response(request: Request, exc: ErrorResponse):
    level = "error" if exc.status_code >= 500 else "info"
    getattr(logger, level)(exc.message, extra={"path": request.url.path, "status_code": exc.status_code})
    return error_envelope(exc.message, exc.status_code)


async def handle_invalid_id(request: Request, exc: InvalidId):
    logger.info("Id cast failure: %s", exc, extra={"path": request.url.path, "status_code": 404})
    return error_envelope("Resource not found", 404)


async def handle_duplicate_key(request: Request, exc: DuplicateKeyError):
    logger.info("Duplicate key: %s", exc.details, extra={"path": request.url.path, "status_code": 400})
    return error_envelope("Duplicate field value entered", 400)


async def handle_request_validation(request: Request, exc: RequestValidationError):
    message = _validation_message(exc)
    logger.info("Validation failed: %s", message, extra={"path": request.url.path, "status_code": 400})
    return error_envelope(message, 400)


async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    return error_envelope(str(exc.detail), exc.status_code)


async def handle_unexpected(request: Request, exc: Exception):
    logger.error("Unhandled error", exc_info=exc, extra={"path": request.url.path, "status_code": 500})
    message = "Server Error" if config.is_production() else (str(exc) or "Server Error")
    return error_envelope(message, 500)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ErrorResponse, handle_error_response)
    app.add_exception_handler(InvalidId, handle_invalid_id)
    app.add_exception_handler(DuplicateKeyError, handle_duplicate_key)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)
