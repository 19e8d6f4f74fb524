"""
tests/conftest.py -- Shared test fixtures for Stockroom Auth.

This module provides:
  - InMemoryUserStore: dict-backed fake with the same four-method surface the
    AuthService uses, plus knobs to simulate store failures
  - settings: Settings with a fixed secret and cheap bcrypt cost
  - service: AuthService over a fresh InMemoryUserStore
  - client / user_store: TestClient over the real app with an isolated
    SQLite user store wired in through a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to worker threads.
Each test gets its own DB name so bootstrap tests always start empty.

DEBUG and RATE_LIMIT_ENABLED must be set before any api/ import:
api.limiter and api.main read Settings at import time.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import replace

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User, normalize_username
from auth.service import AuthService
from auth.store import DuplicateUsernameError, StoreError, UserStore
from auth.tokens import hash_password
from core.config import Settings

TEST_SECRET = "test-secret-0123456789-abcdefghijklmnop"

# ---------------------------------------------------------------------------
# In-memory fake store
# ---------------------------------------------------------------------------


class InMemoryUserStore:
    """Dict-backed stand-in for UserStore.

    Records are copied on the way in and out, like a real database, so a
    User object held by a caller never reflects later changes to the store.

    Attributes:
        writes:     number of successful save() calls.
        fail_on:    set of method names that raise StoreError when called.
        race_on_save: if True, the next insert raises DuplicateUsernameError
                    as if a concurrent request had inserted first.
    """

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self.writes = 0
        self.fail_on: set[str] = set()
        self.race_on_save = False

    def _check(self, method: str) -> None:
        if method in self.fail_on:
            raise StoreError(f"simulated failure in {method}")

    def find_by_username(self, username: str) -> User | None:
        self._check("find_by_username")
        wanted = normalize_username(username)
        for user in self._users.values():
            if user.username == wanted:
                return replace(user)
        return None

    def find_by_id(self, user_id: str) -> User | None:
        self._check("find_by_id")
        user = self._users.get(user_id)
        return replace(user) if user else None

    def count_all(self) -> int:
        self._check("count_all")
        return len(self._users)

    def save(self, user: User) -> User:
        self._check("save")
        if user.id is None:
            if self.race_on_save:
                self.race_on_save = False
                raise DuplicateUsernameError(user.username)
            user.username = normalize_username(user.username)
            if any(u.username == user.username for u in self._users.values()):
                raise DuplicateUsernameError(user.username)
            user.id = uuid.uuid4().hex
        self._users[user.id] = replace(user)
        self.writes += 1
        return user

    # Administration helpers (outside the service's surface)

    def add(self, username: str, password: str, role: str = "user", is_active: bool = True) -> User:
        user = User(
            username=username,
            password_hash=hash_password(password, rounds=4),
            role=role,
            is_active=is_active,
        )
        self.save(user)
        self.writes = 0
        return user

    def set_active(self, user_id: str, is_active: bool) -> None:
        self._users[user_id].is_active = is_active

    def delete(self, user_id: str) -> None:
        del self._users[user_id]


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    """Settings with a known secret and the cheapest bcrypt cost."""
    return Settings(jwt_secret=TEST_SECRET, bcrypt_rounds=4, setup_echo_password=True)


@pytest.fixture
def fake_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def service(fake_store: InMemoryUserStore, settings: Settings) -> AuthService:
    return AuthService(fake_store, settings)


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, settings: Settings):
    """Return a lifespan that wires the test store in place of the real one."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.auth_service = AuthService(user_store, settings)
        yield

    return test_lifespan


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    """Empty SQLite-backed UserStore private to one test."""
    db_url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    store = UserStore(db_url)
    yield store
    store.close()


@pytest.fixture
def client(user_store: UserStore, settings: Settings) -> Generator[TestClient, None, None]:
    """TestClient over the real app, backed by the per-test user_store."""
    original = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(user_store, settings)
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client
    app.router.lifespan_context = original
