"""Error taxonomy and FastAPI handlers."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from ikioi.core.logging import get_request_id


def format_hms(duration: timedelta) -> str:
    """HH:MM:SS, truncated to whole seconds; hours may exceed 24."""
    total = max(0, int(duration.total_seconds()))
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id
        self.details = details or {}


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class NotAuthenticatedError(AppError):
    code = "not_authenticated"
    status_code = 401


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class PersistenceError(AppError):
    code = "persistence_error"
    status_code = 503


class CooldownError(AppError):
    """Raised when effort is logged again inside the cooldown window.

    Carries the remaining wait and the exact moment logging reopens.
    """

    code = "cooldown_active"
    status_code = 429

    def __init__(self, remaining: timedelta, next_allowed_at: datetime, *, request_id: Optional[str] = None):
        self.remaining = remaining
        self.next_allowed_at = next_allowed_at
        super().__init__(
            f"Effort already logged. Next log allowed in {self.remaining_formatted}",
            request_id=request_id,
            details={
                "remaining": self.remaining_formatted,
                "next_allowed_at": self.next_allowed_at_iso,
            },
        )

    @property
    def remaining_formatted(self) -> str:
        return format_hms(self.remaining)

    @property
    def next_allowed_at_iso(self) -> str:
        return self.next_allowed_at.isoformat()


logger = logging.getLogger("ikioi")


def _resolve_rid(request: Request, preferred: Optional[str] = None) -> str:
    return (
        preferred
        or getattr(request.state, "request_id", None)
        or get_request_id()
        or str(uuid4())
    )


def error_body(code: str, message: str, request_id: str, details: Optional[Dict[str, Any]] = None) -> dict:
    """Envelope shared by every error response; details are flattened into ``error``."""
    error = {"code": code, "message": message, "request_id": request_id, **(details or {})}
    return {"error": error, "detail": message}


def _respond(status: int, code: str, message: str, rid: str, details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    response = JSONResponse(status_code=status, content=error_body(code, message, rid, details))
    response.headers["x-request-id"] = rid
    return response


async def app_error_handler(request: Request, exc: AppError):
    rid = _resolve_rid(request, exc.request_id)
    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    return _respond(exc.status_code, exc.code, exc.message, rid, exc.details)


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _resolve_rid(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    return _respond(exc.status_code, code, exc.detail or "HTTP error", rid)


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid input"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    msg = first.get("msg", "invalid input")
    return f"{field}: {msg}" if field else msg


async def request_validation_handler(request: Request, exc: RequestValidationError):
    rid = _resolve_rid(request)
    logger.warning("request.invalid", extra={"request_id": rid, "error_code": "validation_error", "status": 400})
    return _respond(400, "validation_error", _first_validation_message(exc), rid)


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _resolve_rid(request)
    logger.error("unhandled.exception", exc_info=exc, extra={"request_id": rid, "error_code": "internal_error"})
    return _respond(500, "internal_error", "Unexpected error", rid)
