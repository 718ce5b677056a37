"""Shared fixtures for catalog sync tests."""

from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import pytest

from catalogsync.application.scheduler import ManualClock
from catalogsync.catalog.transformer import CatalogTransformer
from catalogsync.domain.models import InternalProduct
from catalogsync.domain.policy import CatalogPolicy, PricingPolicy, SyncPolicy
from catalogsync.infrastructure.memory import (
    InMemoryCatalogStore,
    InMemoryInternalProductStore,
    InMemorySyncLogStore,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

ProductFactory = Callable[..., InternalProduct]


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for transformations."""
    return NOW


@pytest.fixture
def make_product() -> ProductFactory:
    """Build internal products with sensible defaults."""

    def factory(product_id: str = "p1", **overrides: Any) -> InternalProduct:
        values: dict[str, Any] = {
            "name": "Hydraulic Valve",
            "brand": "FlowMax",
            "sku": "HV-100",
            "category": "hydraulics",
            "description": "",
            "price": Decimal("100"),
            "stock": 5,
            "min_stock": 10,
            "status": "active",
        }
        values.update(overrides)
        return InternalProduct(id=product_id, **values)

    return factory


@pytest.fixture
def transformer() -> CatalogTransformer:
    """Transformer with default pricing and merchandising policy."""
    return CatalogTransformer(PricingPolicy(), CatalogPolicy())


@pytest.fixture
def sync_policy() -> SyncPolicy:
    """Sync policy with short intervals and no reconciliation pause."""
    return SyncPolicy(
        batch_size=10,
        max_retries=3,
        sync_interval_seconds=3.0,
        image_interval_seconds=10.0,
        image_max_retries=2,
        image_timeout_seconds=60.0,
        reconciliation_pause_seconds=0.0,
    )


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def clock() -> ManualClock:
    """Virtual clock starting at the fixed reference time."""
    return ManualClock(start=NOW)


@pytest.fixture
def internal_store() -> InMemoryInternalProductStore:
    """Empty internal product store."""
    return InMemoryInternalProductStore()


@pytest.fixture
def catalog_store() -> InMemoryCatalogStore:
    """Empty public catalog store."""
    return InMemoryCatalogStore()


@pytest.fixture
def log_store() -> InMemorySyncLogStore:
    """Empty sync log store."""
    return InMemorySyncLogStore()
