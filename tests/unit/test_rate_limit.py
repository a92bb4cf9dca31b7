"""
Tests for the rolling-window rate limiter and its middleware
"""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from harpernet_api.middleware.rate_limit import RateLimitMiddleware, SlidingWindowLimiter


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestSlidingWindowLimiter:
    """Limiter behaviour independent of HTTP"""

    @pytest.mark.asyncio
    async def test_allows_until_threshold(self):
        limiter = SlidingWindowLimiter(requests=3, window_seconds=60, clock=FakeClock())
        decisions = [await limiter.hit("1.2.3.4") for _ in range(4)]
        assert [d.allowed for d in decisions] == [True, True, True, False]
        assert [d.remaining for d in decisions] == [2, 1, 0, 0]

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        limiter = SlidingWindowLimiter(requests=1, window_seconds=60, clock=FakeClock())
        assert (await limiter.hit("a")).allowed
        assert not (await limiter.hit("a")).allowed
        assert (await limiter.hit("b")).allowed

    @pytest.mark.asyncio
    async def test_window_rolls_over(self):
        clock = FakeClock()
        limiter = SlidingWindowLimiter(requests=2, window_seconds=60, clock=clock)
        await limiter.hit("a")
        clock.advance(30)
        await limiter.hit("a")
        blocked = await limiter.hit("a")
        assert not blocked.allowed
        assert blocked.reset_after == 30

        clock.advance(30)
        # The first hit has left the window
        assert (await limiter.hit("a")).allowed
        assert not (await limiter.hit("a")).allowed

    @pytest.mark.asyncio
    async def test_stale_keys_are_cleaned_up(self):
        clock = FakeClock()
        limiter = SlidingWindowLimiter(requests=5, window_seconds=10, clock=clock)
        await limiter.hit("old")
        clock.advance(25)
        await limiter.hit("new")
        assert "old" not in limiter._hits
        assert "new" in limiter._hits

    @pytest.mark.asyncio
    async def test_reset_clears_counters(self):
        limiter = SlidingWindowLimiter(requests=1, window_seconds=60, clock=FakeClock())
        await limiter.hit("a")
        limiter.reset()
        assert (await limiter.hit("a")).allowed


def _app_with_limiter(limiter, paths=None):
    app = FastAPI()
    calls = []

    @app.get("/open")
    def open_route():
        calls.append("open")
        return {"ok": True}

    @app.get("/limited/inner")
    def limited_route():
        calls.append("limited")
        return {"ok": True}

    app.add_middleware(RateLimitMiddleware, limiter=limiter, paths=paths)
    return app, calls


class TestRateLimitMiddleware:
    """Middleware wiring"""

    def test_returns_429_without_calling_handler(self):
        app, calls = _app_with_limiter(SlidingWindowLimiter(requests=2, window_seconds=60))
        client = TestClient(app)

        assert client.get("/open").status_code == 200
        assert client.get("/open").status_code == 200
        response = client.get("/open")

        assert response.status_code == 429
        assert response.json() == {
            "success": False,
            "error": "Too many requests, please try again later.",
        }
        assert "retry-after" in response.headers
        assert calls == ["open", "open"]

    def test_rate_limit_headers_on_allowed_response(self):
        app, _ = _app_with_limiter(SlidingWindowLimiter(requests=5, window_seconds=60))
        response = TestClient(app).get("/open")
        assert response.headers["ratelimit-limit"] == "5"
        assert response.headers["ratelimit-remaining"] == "4"

    def test_paths_restrict_scope(self):
        app, calls = _app_with_limiter(
            SlidingWindowLimiter(requests=1, window_seconds=60), paths=["/limited"]
        )
        client = TestClient(app)

        for _ in range(3):
            assert client.get("/open").status_code == 200
        assert client.get("/limited/inner").status_code == 200
        assert client.get("/limited/inner").status_code == 429
        assert calls == ["open", "open", "open", "limited"]
