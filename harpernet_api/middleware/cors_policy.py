from __future__ import annotations

import logging
from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..errors import error_response

logger = logging.getLogger(__name__)


class OriginPolicy:
    """Accept/reject decision for the ``Origin`` header of a request."""

    def __init__(self, allowed_origins: Iterable[str], *, allow_all: bool = False):
        self.allowed_origins = frozenset(o.rstrip("/") for o in allowed_origins)
        self.allow_all = allow_all

    def is_allowed(self, origin: str | None) -> bool:
        # Non-browser clients send no Origin header.
        if not origin:
            return True
        if self.allow_all:
            return True
        return origin.rstrip("/") in self.allowed_origins


class CORSPolicyMiddleware(BaseHTTPMiddleware):
    """Rejects requests from origins outside the policy before any handler runs.

    Response headers for permitted origins are left to Starlette's
    ``CORSMiddleware``, which sits inside this one.
    """

    def __init__(self, app, *, policy: OriginPolicy):
        super().__init__(app)
        self.policy = policy

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        origin = request.headers.get("origin")
        if not self.policy.is_allowed(origin):
            logger.warning(f"Blocked request from origin {origin} to {request.url.path}")
            return error_response("cors")
        return await call_next(request)
