from __future__ import annotations

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(tags=["System"])

SERVICE_NAME = "harpernet-api"

ENDPOINTS = {
    "POST /api/quiz-results": "Submit quiz result",
    "GET /api/quiz-results/stats": "Get aggregated statistics",
    "GET /api/quiz-results/analytics": "Get detailed analytics",
    "GET /health": "Health check",
}


@router.get("/health")
def health(request: Request):
    # Liveness only; the database is deliberately not consulted.
    settings = request.app.state.settings
    return {
        "success": True,
        "status": "healthy",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        "version": settings.version,
    }


@router.get("/api")
def api_info():
    return {
        "success": True,
        "message": "HarperNet.org Quiz Results API",
        "version": "1.0.0",
        "endpoints": ENDPOINTS,
        "documentation": "/docs",
    }
