"""
Process entry point.

Startup order: settings -> logging -> database check and schema sync -> bind.
A database failure exits with status 1 before the listener is created.
"""
from __future__ import annotations

import logging
import os
import signal
import sys
from typing import Optional

import uvicorn

from .app import create_app
from .config import Settings, load_settings
from .database import create_db_engine, sync_database
from .logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _exit_now(signum, frame) -> None:
    logger.info(f"{signal.Signals(signum).name} received, shutting down")
    logging.shutdown()
    # In-flight requests are not drained.
    os._exit(0)


class ImmediateExitServer(uvicorn.Server):
    """uvicorn server whose SIGTERM/SIGINT handling exits at once."""

    def handle_exit(self, sig: int, frame) -> None:
        _exit_now(sig, frame)


def main(settings: Optional[Settings] = None) -> None:
    settings = settings or load_settings()
    setup_logging(settings)

    try:
        engine = create_db_engine(settings)
        sync_database(engine, settings)
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        sys.exit(1)

    app = create_app(settings, engine)
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        access_log=False,
    )
    server = ImmediateExitServer(config)

    logger.info(
        f"HarperNet API starting on port {settings.port} "
        f"(environment={settings.environment}, version={settings.version})"
    )
    logger.info(f"Health check: http://localhost:{settings.port}/health")
    logger.info(f"API info: http://localhost:{settings.port}/api")

    try:
        server.run()
    except SystemExit:
        logger.error(f"Server error: could not listen on {settings.host}:{settings.port}")
        raise
    if not server.started:
        logger.error(f"Server error: could not listen on {settings.host}:{settings.port}")
        sys.exit(1)


if __name__ == "__main__":
    main()
