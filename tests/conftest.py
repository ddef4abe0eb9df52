"""
tests/conftest.py -- Shared test fixtures for QuizDesk unit and integration tests.

This module provides:
  - user_store / quiz_store: isolated in-memory stores for component tests
  - issuer: a SessionIssuer signed with a fixed test secret
  - admin_claims / student_claims: verified-claims factories, no HTTP involved
  - client: TestClient over a real create_app() with its own database
  - admin_headers / student_headers / register_student: HTTP auth helpers

Design: component tests use plain sqlite:///:memory: because they run on a
single thread. The client fixture uses a named shared-memory SQLite URI
(file:name?mode=memory&cache=shared&uri=true) because TestClient runs route
handlers in a thread pool, and plain :memory: DBs are per-connection. Each
client gets a fresh uuid-named database so tests never see each other's rows.

The rate limiter is disabled for the session; the one test that exercises it
turns it back on locally.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Generator

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import create_app
from auth.models import ROLE_ADMIN, ROLE_STUDENT, TokenClaims
from auth.store import UserStore
from auth.tokens import SessionIssuer
from core.config import Settings
from quiz.store import QuizStore

TEST_SECRET = "test-secret-key-for-quizdesk-0123456789"

limiter.enabled = False


def make_settings(db_name: str | None = None, **overrides) -> Settings:
    """Build Settings without touching the process environment or a .env file."""
    db_name = db_name or f"quizdesk_{uuid.uuid4().hex}"
    values = {
        "secret_key": TEST_SECRET,
        "database_url": f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true",
        "token_expire_seconds": 3600,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def quiz_store() -> Generator[QuizStore, None, None]:
    store = QuizStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def issuer() -> SessionIssuer:
    return SessionIssuer(TEST_SECRET, expire_seconds=3600)


def _claims(user_id: int, email: str, role: str) -> TokenClaims:
    now = int(time.time())
    return TokenClaims(user_id=user_id, email=email, role=role, issued_at=now, expires_at=now + 3600)


@pytest.fixture
def admin_claims() -> Callable[..., TokenClaims]:
    """Factory: admin_claims(user_id=1, email=...) -> TokenClaims with role=admin."""

    def factory(user_id: int = 1, email: str = "admin@example.com") -> TokenClaims:
        return _claims(user_id, email, ROLE_ADMIN)

    return factory


@pytest.fixture
def student_claims() -> Callable[..., TokenClaims]:
    """Factory: student_claims(user_id=2, email=...) -> TokenClaims with role=student."""

    def factory(user_id: int = 2, email: str = "student@example.com") -> TokenClaims:
        return _claims(user_id, email, ROLE_STUDENT)

    return factory


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """TestClient over a freshly built app with its own empty database."""
    app = create_app(make_settings())
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture
def admin_headers(client: TestClient) -> dict[str, str]:
    """Create the first admin through the setup route and return its auth header."""
    resp = client.post(
        "/setup/first-admin",
        json={"name": "Ada Admin", "email": "admin@example.com", "password": "adminpass123"},
    )
    assert resp.status_code == 201, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def register_student(client: TestClient) -> Callable[..., tuple[dict[str, str], dict]]:
    """Factory: register_student(name, email) -> (auth headers, user json)."""

    def factory(name: str = "Sam Student", email: str = "sam@example.com", password: str = "studentpass1"):
        resp = client.post("/auth/register", json={"name": name, "email": email, "password": password})
        assert resp.status_code == 201, resp.text
        data = resp.json()
        return {"Authorization": f"Bearer {data['token']}"}, data["user"]

    return factory


@pytest.fixture
def student_headers(register_student) -> dict[str, str]:
    headers, _user = register_student()
    return headers
