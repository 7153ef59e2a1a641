"""
Shared pytest fixtures for the Boardroom test suite.

Provides:
    - app: Flask application (session-scoped, uploads under a temp dir)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - workspace_id: Default workspace used by service tests
    - ws_headers: X-Workspace-Id header for API tests
"""

import pytest

from boardroom import create_app
from boardroom.models import db as _db

WORKSPACE_ID = "ws-test"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create the Flask application once per test session."""
    application = create_app("testing")
    application.config["BOARD_UPLOAD_ROOT"] = str(tmp_path_factory.mktemp("board_uploads"))
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


def _reset_singletons(app):
    # Service and provider are lazy per-app singletons; rebuild them per test
    for attr in ("_board_service", "_board_llm_provider"):
        if hasattr(app, attr):
            delattr(app, attr)


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        _reset_singletons(app)
        yield
        _reset_singletons(app)
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def workspace_id():
    return WORKSPACE_ID


@pytest.fixture()
def ws_headers():
    return {"X-Workspace-Id": WORKSPACE_ID}
