"""Test fixtures for the nursery API and services."""
import os
import tempfile
from datetime import date
from pathlib import Path

# The store and signing key are read at import time
_TMP_DIR = tempfile.mkdtemp(prefix="nursery-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{(Path(_TMP_DIR) / 'nursery-test.db').as_posix()}"
os.environ.setdefault("NURSERY_SECRET_KEY", "test-secret-key-for-the-nursery-suite-0123456789abcdef")
os.environ.pop("NURSERY_APPROVAL_POLICY", None)

import pytest
from fastapi.testclient import TestClient

from nursery_core.app import models
from nursery_core.app.db import Base, SessionLocal, create_db_and_tables, engine
from nursery_core.app.main import app
from nursery_core.app.security import RateLimiter, get_password_hash
from nursery_core.app.services.status_service import initialize_project_status
from nursery_core.app.store import QueryClient

ADMIN_EMAIL = "admin@example.com"
PASSWORD = "nursery-pass-2024"

# one bcrypt hash shared by every seeded user
_PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture(autouse=True)
def fresh_store():
    """Empty tables, the project status row and an Admin user for every test."""
    Base.metadata.drop_all(bind=engine)
    create_db_and_tables()
    RateLimiter._attempts.clear()

    db = SessionLocal()
    try:
        initialize_project_status(QueryClient(db))
        db.add(models.User(full_name="Admin", email=ADMIN_EMAIL, password_hash=_PASSWORD_HASH, role="Admin"))
        db.commit()
    finally:
        db.close()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db) -> QueryClient:
    return QueryClient(db)


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def login(client, email: str, password: str = PASSWORD) -> dict:
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, f"Login failed: {resp.text}"
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def admin_headers(client) -> dict:
    return login(client, ADMIN_EMAIL)


@pytest.fixture
def make_user(db):
    """Create a user with the given role and return its email."""
    def _make(role: str, email: str = None) -> str:
        email = email or f"{role.lower()}@example.com"
        db.add(models.User(full_name=role, email=email, password_hash=_PASSWORD_HASH, role=role))
        db.commit()
        return email
    return _make


@pytest.fixture
def seeded(store) -> dict:
    """Scenario data: partner "Org A", a batch, a zone and two seedling rows."""
    batch = store.insert("batches", {"batch_code": "B-01", "collected_at": date(2024, 3, 5)})[0]
    zone = store.insert("nursery_zones", {"zone_code": "Z1", "name": "Shade house"})[0]
    partner = store.insert("partners", {"name": "Org A", "contact": "081-000-0000"})[0]
    teak = store.insert("seedlings", {
        "species": "Teak", "height_range": "10-20 cm", "count": 5,
        "survived_count": 4, "batch_id": batch["id"], "zone_id": zone["id"],
    })[0]
    rosewood = store.insert("seedlings", {
        "species": "Rosewood", "height_range": "20-30 cm", "count": 2, "batch_id": batch["id"],
    })[0]
    return {"batch": batch, "zone": zone, "partner": partner, "teak": teak, "rosewood": rosewood}
