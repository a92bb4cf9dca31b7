"""
Central error boundary.

Every failure leaving a route handler is mapped to a JSON body of the form
``{"success": false, "error": ...}`` through ``ERROR_POLICY``. Internal
failures are logged with request context; their raw message is only exposed
outside production.
"""
from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse

from .config import Settings

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"
ROUTE_NOT_FOUND_MESSAGE = "Route not found"


class ApiError(Exception):
    """Base for failures raised deliberately by the application."""

    kind = "internal"

    def __init__(self, message: str = "", details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationFailed(ApiError):
    kind = "validation"


class CORSRejected(ApiError):
    kind = "cors"


class PayloadTooLarge(ApiError):
    kind = "payload_too_large"


class PersistenceError(ApiError):
    kind = "persistence"


class DatabaseUnavailable(ApiError):
    kind = "database_unavailable"


@dataclass(frozen=True)
class ErrorPolicy:
    status_code: int
    public_message: Optional[str]
    # Internal errors hide their raw message in production.
    internal: bool = False


ERROR_POLICY: Dict[str, ErrorPolicy] = {
    "validation": ErrorPolicy(400, "Validation failed"),
    "cors": ErrorPolicy(403, "Not allowed by CORS"),
    "not_found": ErrorPolicy(404, ROUTE_NOT_FOUND_MESSAGE),
    "payload_too_large": ErrorPolicy(413, "Request entity too large"),
    "rate_limited": ErrorPolicy(429, "Too many requests, please try again later."),
    "persistence": ErrorPolicy(500, None, internal=True),
    "database_unavailable": ErrorPolicy(503, None, internal=True),
    "internal": ErrorPolicy(500, None, internal=True),
}


def error_body(kind: str, message: str = "", *, expose_internal: bool = True,
               details: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    policy = ERROR_POLICY.get(kind, ERROR_POLICY["internal"])
    if policy.internal:
        text = message if (expose_internal and message) else INTERNAL_ERROR_MESSAGE
    else:
        text = policy.public_message or message
    body: Dict[str, Any] = {"success": False, "error": text}
    if details:
        body["details"] = details
    return body


def error_response(kind: str, message: str = "", *, expose_internal: bool = True,
                   details: Optional[List[Dict[str, Any]]] = None,
                   headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    policy = ERROR_POLICY.get(kind, ERROR_POLICY["internal"])
    return JSONResponse(
        error_body(kind, message, expose_internal=expose_internal, details=details),
        status_code=policy.status_code,
        headers=headers,
    )


def validation_details(exc: RequestValidationError) -> List[Dict[str, Any]]:
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        details.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return details


def log_unhandled(request: Request, exc: BaseException) -> None:
    client = request.client
    logger.error(
        "Unhandled error: %s",
        str(exc),
        extra={
            "error": str(exc),
            "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            "url": str(request.url),
            "method": request.method,
            "ip": client.host if client else "unknown",
        },
    )


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    expose_internal = not settings.is_production

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        policy = ERROR_POLICY.get(exc.kind, ERROR_POLICY["internal"])
        if policy.internal:
            log_unhandled(request, exc)
        return error_response(
            exc.kind, exc.message, expose_internal=expose_internal, details=exc.details
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return error_response("validation", details=validation_details(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        # Unknown paths and unsupported methods both fall through to the catch-all.
        if exc.status_code in (404, 405):
            return error_response("not_found")
        if exc.status_code == 413:
            return error_response("payload_too_large")
        return JSONResponse(
            {"success": False, "error": str(exc.detail)},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log_unhandled(request, exc)
        return error_response("internal", str(exc), expose_internal=expose_internal)
