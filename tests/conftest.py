from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from auth_service.api import routes
from auth_service.config import Settings
from auth_service.domain.account import Account
from auth_service.domain.service import Authenticator
from auth_service.repository import InMemoryAccountStore
from auth_service.security.passwords import hash_password
from auth_service.security.rate_limiter import SlidingWindowRateLimiter

ADMIN_PASSWORD = "123456"
TEST_SECRET = "test-signing-secret-0123456789abcdef"


class FakeClock:
    """Controllable UTC clock for lock window arithmetic."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(scope="session")
def admin_hash() -> str:
    return hash_password(ADMIN_PASSWORD, rounds=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(jwt_secret=TEST_SECRET, locale="en", debug_endpoints_enabled=True)


@pytest.fixture
def make_account(admin_hash: str) -> Callable[..., Account]:
    """Build accounts sharing the admin password hash unless overridden."""

    def factory(**overrides) -> Account:
        fields = {
            "id": "u_001",
            "username": "admin@kitchen.com",
            "password_hash": admin_hash,
            "enabled": True,
            "failed_attempts": 0,
            "locked_until": None,
            "role": "admin",
            "name": "Admin",
        }
        fields.update(overrides)
        return Account(**fields)

    return factory


@pytest.fixture
def store(make_account) -> InMemoryAccountStore:
    return InMemoryAccountStore([make_account()])


@pytest.fixture
def authenticator(store, settings, clock) -> Authenticator:
    return Authenticator(store, settings, clock=clock)


def build_test_app(
    authenticator: Authenticator,
    settings: Settings,
    rate_limiter: SlidingWindowRateLimiter | None = None,
) -> FastAPI:
    app = FastAPI()
    app.include_router(routes.router)
    app.state.settings = settings
    app.state.authenticator = authenticator
    app.state.rate_limiter = rate_limiter or SlidingWindowRateLimiter(
        max_requests=100, window_seconds=60
    )
    return app


@pytest.fixture
def api_client(authenticator, settings, store):
    """Provide a FastAPI test client with isolated state."""
    app = build_test_app(authenticator, settings)
    with TestClient(app) as client:
        yield client, store
