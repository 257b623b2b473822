"""Shared test fixtures for Keylock."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient


SECRET_KEY = "test-secret-key-for-unit-tests"
ADMIN_USERNAME = "operator"
ADMIN_PASSWORD = "test-admin-password"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings_env(monkeypatch):
    """Point settings at an in-memory store with known credentials."""
    monkeypatch.setenv("KEYLOCK_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("KEYLOCK_SECRET_KEY", SECRET_KEY)
    monkeypatch.setenv("KEYLOCK_ADMIN_USERNAME", ADMIN_USERNAME)
    monkeypatch.setenv("KEYLOCK_ADMIN_PASSWORD", ADMIN_PASSWORD)

    # Clear caches and singletons so new env vars take effect
    from keylock.common.config import get_settings
    get_settings.cache_clear()

    from keylock.deps import reset_singletons
    reset_singletons()
    yield
    get_settings.cache_clear()
    reset_singletons()


@pytest.fixture
def app(settings_env):
    from keylock.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init the store since ASGITransport doesn't run lifespan
    from keylock.deps import initialize_store
    store = await initialize_store()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await store.close()


@pytest.fixture
def admin_token(settings_env):
    from keylock.deps import get_authenticator
    return get_authenticator().login(ADMIN_USERNAME, ADMIN_PASSWORD)


@pytest.fixture
def admin_headers(admin_token):
    return {"X-Keylock-Token": admin_token}
