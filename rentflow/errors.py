# rentflow/errors.py
from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .logging_config import get_request_id

log = logging.getLogger(__name__)


class MoveInError(Exception):
    """Base for every domain error raised by the move-in services."""

    code = "error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def as_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class ValidationError(MoveInError):
    code = "validation_error"


class InvalidInputError(ValidationError):
    code = "invalid_input"


class Forbidden(MoveInError):
    code = "forbidden"
    http_status = status.HTTP_403_FORBIDDEN


class NotFound(MoveInError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class InvalidState(MoveInError):
    code = "invalid_state"


class WindowClosed(InvalidState):
    """Reporting attempted before the move-in window opened."""

    code = "window_closed"


class WindowExpired(InvalidState):
    """Reporting attempted after the verification deadline."""

    code = "window_expired"


class AlreadyDecided(InvalidState):
    code = "already_decided"


HTTP_ERROR_CODES = {
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MoveInError)
    async def move_in_error_handler(request: Request, exc: MoveInError):
        return JSONResponse(status_code=exc.http_status, content=exc.as_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": HTTP_ERROR_CODES.get(exc.status_code, "http_error"), "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        log.warning("request validation failed on %s", request.url.path)
        return JSONResponse(
            status_code=422,
            content={"error": "validation_error", "message": "Invalid request body", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        log.error(
            "unhandled exception on %s %s: %s\n%s",
            request.method,
            request.url.path,
            exc,
            traceback.format_exc(),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "internal_error",
                "message": "An unexpected error occurred",
                "request_id": get_request_id(),
            },
        )
