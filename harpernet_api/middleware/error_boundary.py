from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from ..errors import error_response, log_unhandled


class ErrorBoundaryMiddleware(BaseHTTPMiddleware):
    """
    Turns exceptions escaping the routes into the internal-error response.

    Installed innermost so the 500 still passes back through the CORS, security
    header and request logging layers.
    """

    def __init__(self, app: ASGIApp, *, expose_internal: bool = True):
        super().__init__(app)
        self.expose_internal = expose_internal

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            log_unhandled(request, exc)
            return error_response("internal", str(exc), expose_internal=self.expose_internal)
