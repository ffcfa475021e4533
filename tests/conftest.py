"""Shared fixtures: in-memory SQLite, a user with an API key, and an HTTP client."""

import os

# Must be set before journal.config is imported anywhere
os.environ["TJ_DATABASE_URL"] = "sqlite://"
os.environ["TJ_JWT_SECRET"] = "test-secret"
os.environ["TJ_UPSERT_STRATEGY"] = "lookup"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session

from journal.config import settings
from journal.database import create_db_and_tables, engine
from journal.models.user import User
from journal.services.api_keys import create_api_key
from journal.services.auth import create_access_token, hash_password


@pytest.fixture(autouse=True)
def db():
    create_db_and_tables()
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture()
def atomic_db(monkeypatch, db):
    """Switch to atomic upserts and add the unique natural-key index."""
    monkeypatch.setattr(settings, "upsert_strategy", "atomic")
    create_db_and_tables()
    yield


@pytest.fixture()
def session():
    with Session(engine) as session:
        yield session


def _make_user(session: Session, email: str = "trader@example.com", password: str = "password123") -> User:
    user = User(email=email, hashed_password=hash_password(password))
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture()
def user(session):
    return _make_user(session)


@pytest.fixture()
def api_key(session, user):
    return create_api_key(session, user.id, "bot")


@pytest.fixture()
def client():
    from journal.main import app

    return TestClient(app)


@pytest.fixture()
def bot_headers(api_key):
    return {"x-api-key": api_key.key}


@pytest.fixture()
def user_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.email)}"}


@pytest.fixture()
def user_factory(session):
    """Create additional users: ``user_factory("other@example.com")``."""
    return lambda email, password="password123": _make_user(session, email, password)
