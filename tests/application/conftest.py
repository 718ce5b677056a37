"""Shared fixtures for sync pipeline tests."""

from collections.abc import Callable

import pytest

from catalogsync.application.orchestrator import ProductSyncOrchestrator
from catalogsync.catalog.repository import BatchOperation
from catalogsync.domain.exceptions import ImageGenerationError, TransientStoreError
from catalogsync.domain.models import ImageSet, InternalProduct
from catalogsync.infrastructure.memory import InMemoryCatalogStore


# ============================================================================
# Test Doubles
# ============================================================================


class StubImageGenerator:
    """Image generator returning fixed CDN URLs.

    Fails the first ``failures`` calls with ImageGenerationError.
    """

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls: list[str] = []

    async def generate_images(self, product: InternalProduct) -> ImageSet:
        self.calls.append(product.id)
        if self.failures > 0:
            self.failures -= 1
            raise ImageGenerationError(product.id, "provider unavailable")
        return ImageSet(
            primary=f"https://cdn.example.com/generated/{product.id}-primary.png",
            technical=f"https://cdn.example.com/generated/{product.id}-technical.png",
            provider="stub",
        )


class FlakyCatalogStore(InMemoryCatalogStore):
    """In-memory catalog whose batch writes fail a configurable number of times."""

    def __init__(self) -> None:
        super().__init__()
        self.failures = 0
        self.fail_batches_larger_than: int | None = None
        self.batch_calls = 0

    async def write_batch(self, operations: list[BatchOperation]) -> list[str | None]:
        self.batch_calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise TransientStoreError("write_batch", "deadline exceeded")
        limit = self.fail_batches_larger_than
        if limit is not None and len(operations) > limit:
            raise TransientStoreError("write_batch", "batch too large")
        return await super().write_batch(operations)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def image_generator() -> StubImageGenerator:
    """Image generator that always succeeds."""
    return StubImageGenerator()


@pytest.fixture
def flaky_catalog_store() -> FlakyCatalogStore:
    """Catalog store with injectable batch failures."""
    return FlakyCatalogStore()


@pytest.fixture
def orchestrator(
    internal_store,
    catalog_store,
    log_store,
    transformer,
    image_generator,
    sync_policy,
    clock,
) -> ProductSyncOrchestrator:
    """Orchestrator on in-memory stores driven by the virtual clock."""
    return ProductSyncOrchestrator(
        internal_store=internal_store,
        catalog_store=catalog_store,
        log_store=log_store,
        transformer=transformer,
        image_generator=image_generator,
        policy=sync_policy,
        clock=clock,
    )


@pytest.fixture
def flaky_orchestrator(
    internal_store,
    flaky_catalog_store,
    log_store,
    transformer,
    image_generator,
    sync_policy,
    clock,
) -> ProductSyncOrchestrator:
    """Orchestrator whose catalog store can be made to fail."""
    return ProductSyncOrchestrator(
        internal_store=internal_store,
        catalog_store=flaky_catalog_store,
        log_store=log_store,
        transformer=transformer,
        image_generator=image_generator,
        policy=sync_policy,
        clock=clock,
    )


@pytest.fixture
def make_image_generator() -> Callable[..., StubImageGenerator]:
    """Build stub image generators that fail a given number of times."""
    return StubImageGenerator
