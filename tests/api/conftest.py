"""Shared fixtures for API tests."""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from catalogsync.infrastructure.config import Settings
from catalogsync.main import create_app


def make_settings(**overrides) -> Settings:
    """Settings for an in-memory app with no pauses and console logging."""
    values = {
        "store_backend": "memory",
        "seed_demo_products": True,
        "reconciliation_pause_seconds": 0.0,
        "log_json": False,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Test client over an app seeded with the demo products."""
    with TestClient(create_app(make_settings())) as client:
        yield client


@pytest.fixture
def empty_client() -> Generator[TestClient, None, None]:
    """Test client over an app with no internal products."""
    with TestClient(create_app(make_settings(seed_demo_products=False))) as client:
        yield client
