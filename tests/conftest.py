"""
Shared pytest fixtures for the Pathway Studio test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - alice / bob / admin: principals (alice authors most fixtures)
    - auth_headers: builds a Bearer header for a principal
    - template / two_phase_template: pre-created templates owned by alice
"""

import pytest

from pathway_studio import create_app
from pathway_studio.auth import Principal
from pathway_studio.models import db as _db
from pathway_studio.services import phase_service, template_service
from pathway_studio.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Principals ───────────────────────────────────────────────────────────


@pytest.fixture()
def alice():
    return Principal(id="user-alice", role="editor")


@pytest.fixture()
def bob():
    return Principal(id="user-bob", role="editor")


@pytest.fixture()
def admin():
    return Principal(id="user-admin", role="admin")


@pytest.fixture()
def auth_headers():
    """Return a function building an Authorization header for a principal."""

    def _headers(principal):
        token = generate_access_token(principal.id, role=principal.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def template(alice):
    """A private draft template owned by alice, without phases."""
    return template_service.create_template(
        alice, {"name": "Fellowship 2024", "is_private": True},
    )


@pytest.fixture()
def two_phase_template(alice, template):
    """``template`` with an Application (Form, 0) and a Review (Review, 1) phase."""
    application = phase_service.create_phase(
        alice, template.id, {"name": "Application", "type": "Form"},
    )
    review = phase_service.create_phase(
        alice, template.id, {"name": "Review", "type": "Review"},
    )
    return template, application, review
