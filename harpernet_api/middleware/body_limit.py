from __future__ import annotations

import logging

from fastapi import HTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..errors import error_response

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware:
    """
    Caps every request body at ``max_bytes``, whatever its content type.

    A declared Content-Length over the cap is answered with 413 straight away.
    Bodies without a usable Content-Length are counted while the handler reads
    them; crossing the cap raises a 413 ``HTTPException`` from ``receive``.
    """

    def __init__(self, app: ASGIApp, *, max_bytes: int = 1024 * 1024):
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = self._content_length(scope)
        if declared is not None and declared > self.max_bytes:
            logger.warning(
                f"Rejected {declared} byte body for {scope.get('path')} (limit {self.max_bytes})"
            )
            response = error_response("payload_too_large")
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    raise HTTPException(status_code=413, detail="Request entity too large")
            return message

        await self.app(scope, limited_receive, send)

    @staticmethod
    def _content_length(scope: Scope) -> int | None:
        for key, value in scope.get("headers", []):
            if key.lower() == b"content-length":
                try:
                    return int(value.decode("latin-1"))
                except ValueError:
                    return None
        return None
