"""Shared fixtures: in-memory SQLite, a fake auth service, and no Redis."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ratemyeagle.auth import AuthUser, get_auth_client
from ratemyeagle.config import Settings, get_settings
from ratemyeagle.database import get_db, init_db
from ratemyeagle.main import app

ANON_KEY = "public-anon-key"

ALICE = AuthUser(
    id="user-alice",
    email="alice.smith@my.unt.edu",
    user_metadata={"first_name": "Alice", "last_name": "Smith"},
)
BOB = AuthUser(id="user-bob", email="bob.jones@my.unt.edu")

TOKENS = {"alice-token": ALICE, "bob-token": BOB}


class FakeAuthClient:
    def get_user(self, token):
        return TOKENS.get(token)


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def client(db_factory):
    def _get_db():
        session = db_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_auth_client] = FakeAuthClient
    app.dependency_overrides[get_settings] = lambda: Settings(supabase_anon_key=ANON_KEY)
    with patch("ratemyeagle.routes.cache_get", return_value=None), \
            patch("ratemyeagle.routes.cache_set"), \
            patch("ratemyeagle.routes.cache_invalidate"):
        yield TestClient(app)
    app.dependency_overrides.clear()
