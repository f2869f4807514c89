"""
tests/conftest.py -- Shared test fixtures for AuthGate.

This module provides:
  - settings:    Settings with a fixed 40-char secret and bcrypt cost 4
  - make_store:  factory for isolated in-memory UserStores
  - auth_service: AuthService over a fresh in-memory store
  - api_client:  TestClient over create_app() with a seeded admin account

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the process.

The shared rate limiter is disabled: the suite logs in far more often than
the production limit allows. test_rate_limit.py re-enables it per test.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Generator

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import create_app
from auth.models import User
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings

TEST_SECRET = "test-secret-key-for-authgate-suite-0123456789"
ADMIN_EMAIL = "root@test.com"
ADMIN_PASSWORD = "adminpass123"

_db_counter = itertools.count()

limiter.enabled = False


def _memory_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{next(_db_counter)}?mode=memory&cache=shared&uri=true"


@pytest.fixture
def settings() -> Settings:
    return Settings(secret_key=TEST_SECRET, bcrypt_rounds=4, database_url="sqlite:///:memory:")


@pytest.fixture
def make_store() -> Generator[Callable[[], UserStore], None, None]:
    """Yield a factory of isolated stores; every store it made is closed afterwards."""
    stores: list[UserStore] = []

    def _make() -> UserStore:
        store = UserStore(db_url=_memory_url("test_users"))
        stores.append(store)
        return store

    yield _make
    for store in stores:
        store.close()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def auth_service(settings: Settings, make_store, hasher: PasswordHasher) -> AuthService:
    return AuthService(store=make_store(), hasher=hasher, tokens=TokenService(settings), settings=settings)


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The TestClient drives the real app from create_app() over an isolated
    in-memory store. An admin account (ADMIN_EMAIL / ADMIN_PASSWORD) is
    seeded directly through the store before the client starts.
    """
    app_settings = Settings(secret_key=TEST_SECRET, bcrypt_rounds=4)
    user_store = UserStore(db_url=_memory_url("test_api"))
    admin_id = user_store.create_user(
        User(
            name="Root Admin",
            email=ADMIN_EMAIL,
            hashed_password=PasswordHasher(rounds=4).hash(ADMIN_PASSWORD),
            role="admin",
        )
    )
    token = TokenService(app_settings).issue(admin_id, "admin")

    app = create_app(app_settings, user_store=user_store)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin_id

    user_store.close()
