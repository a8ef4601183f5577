from __future__ import annotations

from datetime import date

import pytest
from fastapi.testclient import TestClient

from adonai.config import Settings
from adonai.db import Database
from adonai.dependencies import Services, quota_period
from adonai.main import create_app
from adonai.services.quota import QuotaPeriod
from tests.utils.fakes import FakeCompletion, FakeIdentityResolver

TODAY = QuotaPeriod(date(2026, 3, 14))


def make_settings(**overrides) -> Settings:
    values = {
        "supabase_url": "https://project.supabase.test",
        "supabase_anon_key": "anon-key",
        "supabase_service_key": "service-key",
        "database_url": "sqlite:////tmp/adonai_unused.db",
        "openai_api_key": "test",
        "static_dir": "/nonexistent/adonai-frontend",
        "daily_limit_free": 10,
        "unlimited_tiers": ["premium", "admin"],
        "quota_policy": "fail_open",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(scope="session")
def app():
    """Single app instance; prometheus collectors can only be registered once."""
    return create_app(make_settings())


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def database(tmp_path):
    db = Database.from_url(f"sqlite:///{tmp_path / 'adonai.db'}", create_all=True)
    yield db
    db.dispose()


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture
def services(settings, database, completion) -> Services:
    return Services.from_settings(
        settings,
        database=database,
        identity=FakeIdentityResolver(),
        completion=completion,
    )


@pytest.fixture
def period() -> QuotaPeriod:
    return TODAY


@pytest.fixture
def client(app, services, period):
    """Yields a TestClient with lifespan events and injected services."""
    app.state.services = services
    app.dependency_overrides[quota_period] = lambda: period
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
        app.state.services = None
