"""
Pytest configuration and fixtures
"""
import sys
from dataclasses import replace
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Add project root to Python path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from harpernet_api.app import create_app  # noqa: E402
from harpernet_api.config import Settings  # noqa: E402
from harpernet_api.database import create_db_engine, sync_database  # noqa: E402

VALID_SUBMISSION = {
    "quiz_id": "harper-personality",
    "quiz_title": "Which Harper Are You?",
    "result_type": "explorer",
    "score": 8,
    "max_score": 10,
    "answers": [
        {"question_id": 1, "answer": "b", "correct": True},
        {"question_id": 2, "answer": "d", "correct": False},
    ],
    "time_taken_seconds": 95,
    "session_id": "sess-123",
}


@pytest.fixture
def settings():
    return Settings(
        environment="test",
        database_url="sqlite:///:memory:",
        rate_limit_requests=1000,
        stats_rate_limit_requests=1000,
    )


@pytest.fixture
def make_app(settings):
    """Factory for an app backed by a fresh in-memory database."""
    engines = []

    def _make(**overrides):
        app_settings = replace(settings, **overrides)
        engine = create_db_engine(app_settings)
        sync_database(engine, app_settings)
        engines.append(engine)
        return create_app(app_settings, engine)

    yield _make
    for engine in engines:
        engine.dispose()


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session(app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def submission():
    return dict(VALID_SUBMISSION)
