from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import Engine

from .config import Settings, load_settings
from .database import create_db_engine, create_session_factory
from .errors import register_exception_handlers
from .middleware import (
    BodySizeLimitMiddleware,
    CORSPolicyMiddleware,
    ErrorBoundaryMiddleware,
    OriginPolicy,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    SlidingWindowLimiter,
)
from .routes import quiz_results_router, system_router

logger = logging.getLogger(__name__)

STATS_PATHS = ("/api/quiz-results/stats", "/api/quiz-results/analytics")


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    """
    Build the application.

    The settings, engine, session factory and rate limiters are owned by the
    returned app (see ``app.state``); nothing is shared between app instances.
    """
    settings = settings or load_settings()
    engine = engine or create_db_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        engine.dispose()

    app = FastAPI(
        title="HarperNet Quiz Results API",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.started_at = time.monotonic()
    app.state.general_limiter = SlidingWindowLimiter(
        requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.state.stats_limiter = SlidingWindowLimiter(
        requests=settings.stats_rate_limit_requests,
        window_seconds=settings.stats_rate_limit_window_seconds,
    )

    # Middleware added last runs first. Request order:
    # logging -> security headers -> origin policy -> CORS headers -> gzip
    # -> body size -> general limiter -> stats limiter -> error boundary -> routes
    app.add_middleware(ErrorBoundaryMiddleware, expose_internal=not settings.is_production)
    if settings.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware, limiter=app.state.stats_limiter, paths=STATS_PATHS
        )
        app.add_middleware(RateLimitMiddleware, limiter=app.state.general_limiter)
        logger.info(
            f"Rate limiting enabled: {settings.rate_limit_requests} requests per "
            f"{settings.rate_limit_window_seconds} seconds, stats "
            f"{settings.stats_rate_limit_requests} per {settings.stats_rate_limit_window_seconds} seconds"
        )
    else:
        logger.warning("Rate limiting is DISABLED. Only use this in trusted environments.")

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    cors_kwargs = {
        "allow_credentials": True,
        "allow_methods": ["*"],
        "allow_headers": ["*"],
    }
    if settings.is_development:
        cors_kwargs["allow_origin_regex"] = ".*"
    else:
        cors_kwargs["allow_origins"] = list(settings.allowed_origins)
    app.add_middleware(CORSMiddleware, **cors_kwargs)
    app.add_middleware(
        CORSPolicyMiddleware,
        policy=OriginPolicy(settings.allowed_origins, allow_all=settings.is_development),
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app, settings)

    app.include_router(system_router)
    app.include_router(quiz_results_router, prefix="/api/quiz-results")

    return app
