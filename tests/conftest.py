"""Pytest configuration and fixtures – in-memory SQLite, no external services."""

import os

os.environ["DATABASE_URL"] = "sqlite://"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from medical_api.main import app  # noqa: E402
from medical_api.models.database import Base, SessionLocal, engine, get_db  # noqa: E402
from medical_api.seed import seed  # noqa: E402
from medical_api.services.access import AccessService, Actor  # noqa: E402
from medical_api.services.policy import Role  # noqa: E402
from medical_api.services.store import RecordStore  # noqa: E402


@pytest.fixture
def db():
    """Fresh schema for each test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(db):
    return RecordStore(db)


@pytest.fixture
def service(store):
    return AccessService(store)


@pytest.fixture
def patients(store):
    """Seeded patient ids keyed by first name: John, Maria, Robert."""
    return seed(store)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def physician():
    return Actor(id="dr-smith", role=Role.PHYSICIAN, department="Internal Medicine")


@pytest.fixture
def nurse():
    return Actor(id="nurse-jones", role=Role.NURSE, department="Emergency")


@pytest.fixture
def billing_clerk():
    return Actor(id="billing-wilson", role=Role.BILLING, department="Administration")


@pytest.fixture
def admin():
    return Actor(id="admin-lee", role=Role.ADMIN)
