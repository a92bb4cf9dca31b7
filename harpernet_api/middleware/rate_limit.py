from __future__ import annotations

import asyncio
import math
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional, Sequence

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..errors import error_response


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int


class SlidingWindowLimiter:
    """
    In-memory rolling-window counter keyed by client identifier.

    One instance is owned by each application; counters are per process.
    """

    def __init__(
        self,
        *,
        requests: int = 100,
        window_seconds: int = 900,
        cleanup_interval: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.requests = max(1, requests)
        self.window = max(1, window_seconds)
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._state_lock = asyncio.Lock()
        self._cleanup_interval = max(1, cleanup_interval or self.window)
        self._expiration_window = self.window * 2
        self._last_cleanup = self._clock()

    async def hit(self, identifier: str) -> RateLimitDecision:
        now = self._clock()
        earliest = now - self.window

        async with self._state_lock:
            self._maybe_cleanup(now)
            timestamps = self._hits[identifier]
            per_key_lock = self._locks[identifier]

        async with per_key_lock:
            # Trim timestamps outside the window
            while timestamps and timestamps[0] <= earliest:
                timestamps.popleft()

            if len(timestamps) >= self.requests:
                reset_after = math.ceil(timestamps[0] + self.window - now)
                return RateLimitDecision(False, self.requests, 0, max(1, reset_after))

            timestamps.append(now)
            reset_after = math.ceil(timestamps[0] + self.window - now)
            return RateLimitDecision(
                True, self.requests, self.requests - len(timestamps), max(1, reset_after)
            )

    def reset(self) -> None:
        self._hits.clear()
        self._locks.clear()

    def _maybe_cleanup(self, now: float) -> None:
        """Remove stale client entries to keep in-memory usage bounded."""
        if now - self._last_cleanup < self._cleanup_interval:
            return

        expiration_cutoff = now - self._expiration_window
        stale_keys = [
            key
            for key, timestamps in list(self._hits.items())
            if not timestamps or timestamps[-1] < expiration_cutoff
        ]

        for key in stale_keys:
            self._hits.pop(key, None)
            self._locks.pop(key, None)

        self._last_cleanup = now


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies a ``SlidingWindowLimiter`` to requests.

    With ``paths`` set, only requests whose path equals one of them (or sits
    below it) are counted; everything else passes straight through.
    """

    def __init__(
        self,
        app,
        *,
        limiter: SlidingWindowLimiter,
        paths: Optional[Sequence[str]] = None,
        key_func: Callable[[Request], str] | None = None,
    ):
        super().__init__(app)
        self.limiter = limiter
        self.paths = tuple(p.rstrip("/") for p in paths) if paths else None
        self.key_func = key_func or self._default_key

    @staticmethod
    def _default_key(request: Request) -> str:
        client = request.client
        return client.host if client else "unknown"

    def _applies_to(self, path: str) -> bool:
        if self.paths is None:
            return True
        path = path.rstrip("/")
        return any(path == p or path.startswith(p + "/") for p in self.paths)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not self._applies_to(request.url.path):
            return await call_next(request)

        decision = await self.limiter.hit(self.key_func(request))
        headers = {
            "RateLimit-Limit": str(decision.limit),
            "RateLimit-Remaining": str(decision.remaining),
            "RateLimit-Reset": str(decision.reset_after),
        }

        if not decision.allowed:
            headers["Retry-After"] = str(decision.reset_after)
            return error_response("rate_limited", headers=headers)

        response = await call_next(request)
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response
