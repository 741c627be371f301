"""
Shared fixtures: an isolated SQLite database per test, a TestClient wired to
it, and a ready-made care team (family admin, care recipient, caregiver).
"""

import os

# Must be set before app modules read their config
os.environ["DATABASE_URL"] = "sqlite://"

from contextlib import asynccontextmanager
from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.client.api import AnchorClient
from app.db.base import Base
from app.db.session import build_engine, get_db
from app.main import app

API = "/api/v1"
FAMILY_PASSWORD = "correct-horse-battery"


@pytest.fixture
def db_engine(tmp_path):
    """File-backed so the threadpool and the async transport share one database."""
    engine = build_engine(f"sqlite:///{tmp_path / 'anchor_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
    yield session
    session.close()


@pytest.fixture
def client(db_engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def signup(client, email="priya@example.com", name="Priya Sharma"):
    response = client.post(f"{API}/auth/signup", json={"email": email, "name": name, "password": FAMILY_PASSWORD})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def care_team(client):
    """Family admin -> care recipient -> caregiver, all logged in."""
    family = signup(client)
    family_headers = auth_headers(family["token"])

    recipient = client.post(
        f"{API}/care-recipients",
        json={"name": "Rose Sharma", "condition": "Progressive Supranuclear Palsy"},
        headers=family_headers,
    ).json()
    caregiver = client.post(
        f"{API}/caregivers",
        json={"careRecipientId": recipient["id"], "name": "Maria Santos", "username": "maria-santos"},
        headers=family_headers,
    ).json()
    login = client.post(
        f"{API}/auth/caregiver/login",
        json={"username": caregiver["username"], "pin": caregiver["pin"]},
    ).json()

    return SimpleNamespace(
        family=family,
        family_email=family["user"]["email"],
        family_headers=family_headers,
        recipient_id=recipient["id"],
        caregiver=caregiver,
        caregiver_headers=auth_headers(login["token"]),
    )


@pytest.fixture
def anchor_client():
    """
    Factory for AnchorClient instances talking to the app in-process.
    Yields (client, sent_requests) so tests can count outbound calls.
    """

    @asynccontextmanager
    async def factory():
        sent = []

        async def record(request):
            sent.append(request)

        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url=f"http://testserver{API}",
            event_hooks={"request": [record]},
        ) as http:
            yield AnchorClient(http=http), sent

    return factory
