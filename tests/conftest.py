"""Shared fixtures: an app on a throwaway SQLite file plus small API helpers."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select

from odrlab.config import Settings
from odrlab.main import create_app

ADMIN_EMAIL = "admin@odrlab.com"
ADMIN_PASSWORD = "admin-password-1"
PASSWORD = "longenough1"


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "odrlab-test.db"


@pytest.fixture
def settings(db_path):
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{db_path}",
        SECRET_KEY="test-secret-key-for-jwt-signing",
        ENVIRONMENT="development",
        ADMIN_EMAIL=ADMIN_EMAIL,
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sync_engine(db_path, client):
    engine = create_engine(f"sqlite:///{db_path}")
    yield engine
    engine.dispose()


@pytest.fixture
def count_rows(sync_engine):
    """count_rows(Model, *criteria) → number of matching rows."""
    def _count(model, *criteria):
        with sync_engine.connect() as conn:
            stmt = select(func.count()).select_from(model)
            if criteria:
                stmt = stmt.where(*criteria)
            return conn.execute(stmt).scalar_one()
    return _count


def auth_headers(response):
    """Bearer header built from the access cookie a response set."""
    token = response.cookies.get("access_token")
    assert token, "response did not set an access_token cookie"
    return {"Authorization": f"Bearer {token}"}


def signup(client, email, name="Test User", password=PASSWORD, **fields):
    """Register a user and return (headers, user json); the client cookie jar is left empty."""
    response = client.post(
        "/api/auth/signup",
        json={"name": name, "email": email, "password": password, **fields},
    )
    assert response.status_code == 201, response.text
    headers = auth_headers(response)
    client.cookies.clear()
    return headers, response.json()["user"]


def login(client, email, password=PASSWORD):
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    headers = auth_headers(response)
    client.cookies.clear()
    return headers


@pytest.fixture
def admin_headers(client):
    return login(client, ADMIN_EMAIL, ADMIN_PASSWORD)


def submit_idea(client, headers, title="Online mediation toolkit", **fields):
    body = {
        "title": title,
        "caption": "Faster small-claims settlements",
        "description": "A toolkit that guides both parties through structured negotiation.",
        "priorOdrExperience": "Volunteered at a community mediation centre",
        **fields,
    }
    response = client.post("/api/ideas/submit", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def published_idea(client, admin_headers):
    """An approved idea owned by a fresh innovator; returns (owner_headers, idea json)."""
    owner_headers, _ = signup(client, "owner@odrlab.com", name="Idea Owner", userType="student")
    submission = submit_idea(client, owner_headers)
    response = client.post(
        "/api/admin/approve-idea", json={"ideaId": submission["id"]}, headers=admin_headers
    )
    assert response.status_code == 200, response.text
    return owner_headers, response.json()["idea"]
