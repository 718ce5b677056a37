"""Tests for the batch sync processor."""

from datetime import timedelta
from decimal import Decimal

import pytest

from catalogsync.domain.models import StockStatus, Visibility
from catalogsync.domain.state_machines import SyncLogStatus, SyncType


class TestCreate:
    """Tests for first-time sync of a product."""

    @pytest.mark.asyncio
    async def test_creates_entry_and_logs(
        self, orchestrator, internal_store, catalog_store, log_store, make_product
    ) -> None:
        """A new product gets one entry, one success log and an image job."""
        await internal_store.put(make_product("p1"))
        orchestrator.sync_queue.enqueue("p1", SyncType.CREATE)

        processed = await orchestrator.processor.process_batch()

        assert processed == 1
        [entry] = await catalog_store.find_by_internal_id("p1")
        assert entry.pricing.list_price == Decimal("120.00")
        [log] = log_store.entries
        assert log.status == SyncLogStatus.SUCCESS
        assert log.sync_type == SyncType.CREATE
        assert log.ecommerce_product_id == entry.id
        assert log.retry_count == 0
        assert orchestrator.image_queue.pending_product_ids() == ["p1"]
        assert orchestrator.stats.success_count == 1

    @pytest.mark.asyncio
    async def test_product_with_real_image_skips_image_job(
        self, orchestrator, internal_store, make_product
    ) -> None:
        """Products that already have a real image are not sent for generation."""
        await internal_store.put(make_product("p1", image_url="https://cdn.example.com/p1.jpg"))
        orchestrator.sync_queue.enqueue("p1", SyncType.CREATE)

        await orchestrator.processor.process_batch()

        assert len(orchestrator.image_queue) == 0

    @pytest.mark.asyncio
    async def test_concurrent_operations_create_one_entry(
        self, orchestrator, internal_store, catalog_store, make_product
    ) -> None:
        """Two in-flight operations for one product never insert twice."""
        await internal_store.put(make_product("p1"))
        queue = orchestrator.sync_queue
        queue.enqueue("p1", SyncType.CREATE)
        [in_flight] = queue.take(1)
        queue.enqueue("p1", SyncType.UPDATE)
        queue.requeue(in_flight)
        assert len(queue) == 2

        await orchestrator.processor.process_batch()

        assert len(await catalog_store.find_by_internal_id("p1")) == 1
        assert orchestrator.stats.success_count == 2

    @pytest.mark.asyncio
    async def test_batch_size_limits_work(self, orchestrator, internal_store, make_product) -> None:
        """One tick processes at most batch_size operations."""
        for index in range(15):
            await internal_store.put(make_product(f"p{index}"))
            orchestrator.sync_queue.enqueue(f"p{index}", SyncType.CREATE)

        assert await orchestrator.processor.process_batch() == 10
        assert len(orchestrator.sync_queue) == 5
        assert await orchestrator.processor.process_batch() == 5

    @pytest.mark.asyncio
    async def test_empty_queue_is_noop(self, orchestrator) -> None:
        """Nothing happens when the queue is empty."""
        assert await orchestrator.processor.process_batch() == 0


class TestUpdate:
    """Tests for updates of already-synced products."""

    @pytest.mark.asyncio
    async def test_stock_to_zero_hides_entry(
        self, orchestrator, internal_store, catalog_store, log_store, make_product
    ) -> None:
        """Selling out writes availability and listing flags but leaves pricing alone."""
        await internal_store.put(make_product("p1", stock=5))
        orchestrator.sync_queue.enqueue("p1", SyncType.CREATE)
        await orchestrator.processor.process_batch()
        [before] = await catalog_store.find_by_internal_id("p1")

        await internal_store.put(make_product("p1", stock=0))
        orchestrator.sync_queue.enqueue("p1", SyncType.UPDATE)
        await orchestrator.processor.process_batch()

        [after] = await catalog_store.find_by_internal_id("p1")
        assert after.id == before.id
        assert after.availability.stock_status == StockStatus.OUT_OF_STOCK
        assert not after.availability.in_stock
        assert after.visibility == Visibility.PRIVATE
        assert after.pricing == before.pricing
        assert after.version == 2
        update_log = log_store.entries[-1]
        assert update_log.sync_type == SyncType.UPDATE
        assert "availability" in update_log.changed_fields
        assert "pricing" not in update_log.changed_fields

    @pytest.mark.asyncio
    async def test_update_keeps_storefront_trending_flag(
        self, orchestrator, internal_store, catalog_store, make_product
    ) -> None:
        """A trending flag set on the entry survives a price change."""
        await internal_store.put(make_product("p1"))
        orchestrator.sync_queue.enqueue("p1", SyncType.CREATE)
        await orchestrator.processor.process_batch()
        [created] = await catalog_store.find_by_internal_id("p1")
        assert not created.trending
        await catalog_store.update(created.id, {"trending": True})

        await internal_store.put(make_product("p1", price=Decimal("200")))
        orchestrator.sync_queue.enqueue("p1", SyncType.UPDATE)
        await orchestrator.processor.process_batch()

        [after] = await catalog_store.find_by_internal_id("p1")
        assert after.trending
        assert after.version == 2
        assert after.pricing.list_price == Decimal("240.00")

    @pytest.mark.asyncio
    async def test_unchanged_product_writes_nothing(
        self, flaky_orchestrator, internal_store, flaky_catalog_store, log_store, make_product
    ) -> None:
        """Re-syncing an unchanged product succeeds without a catalog write."""
        await internal_store.put(make_product("p1"))
        flaky_orchestrator.sync_queue.enqueue("p1", SyncType.CREATE)
        await flaky_orchestrator.processor.process_batch()
        calls_after_create = flaky_catalog_store.batch_calls

        flaky_orchestrator.sync_queue.enqueue("p1", SyncType.UPDATE)
        await flaky_orchestrator.processor.process_batch()

        assert flaky_catalog_store.batch_calls == calls_after_create
        assert log_store.entries[-1].status == SyncLogStatus.SUCCESS
        assert log_store.entries[-1].changed_fields == []

    @pytest.mark.asyncio
    async def test_duplicates_collapse_to_oldest(
        self, orchestrator, internal_store, catalog_store, transformer, make_product, now
    ) -> None:
        """Extra entries are deleted and the oldest one receives the update."""
        product = make_product("p1")
        oldest_id = await catalog_store.insert(transformer.transform(product, now - timedelta(days=1)))
        await catalog_store.insert(transformer.transform(product, now))
        await internal_store.put(make_product("p1", price=Decimal("150")))
        orchestrator.sync_queue.enqueue("p1", SyncType.UPDATE)

        await orchestrator.processor.process_batch()

        [entry] = await catalog_store.find_by_internal_id("p1")
        assert entry.id == oldest_id
        assert entry.pricing.list_price == Decimal("180.00")

    @pytest.mark.asyncio
    async def test_update_for_missing_entry_creates_it(
        self, orchestrator, internal_store, catalog_store, log_store, make_product
    ) -> None:
        """The write is chosen from current state, not from the queued type."""
        await internal_store.put(make_product("p1"))
        orchestrator.sync_queue.enqueue("p1", SyncType.UPDATE)

        await orchestrator.processor.process_batch()

        assert await catalog_store.count() == 1
        assert log_store.entries[-1].sync_type == SyncType.CREATE


class TestDelete:
    """Tests for deletion of removed products."""

    @pytest.mark.asyncio
    async def test_delete_removes_every_entry(
        self, orchestrator, catalog_store, log_store, transformer, make_product, now
    ) -> None:
        """Deleting a product removes all of its entries, duplicates included."""
        product = make_product("p1")
        await catalog_store.insert(transformer.transform(product, now))
        await catalog_store.insert(transformer.transform(product, now))
        orchestrator.sync_queue.enqueue("p1", SyncType.DELETE)

        await orchestrator.processor.process_batch()

        assert await catalog_store.count() == 0
        [log] = log_store.entries
        assert log.sync_type == SyncType.DELETE
        assert log.changed_fields == ["deleted:2"]

    @pytest.mark.asyncio
    async def test_delete_without_entries_succeeds(self, orchestrator, log_store) -> None:
        """Deleting a product that was never synced is a successful no-op."""
        orchestrator.sync_queue.enqueue("ghost", SyncType.DELETE)

        await orchestrator.processor.process_batch()

        [log] = log_store.entries
        assert log.status == SyncLogStatus.SUCCESS
        assert log.changed_fields == []


class TestRetry:
    """Tests for bounded retry of failed writes."""

    @pytest.mark.asyncio
    async def test_transient_failure_then_success(
        self, flaky_orchestrator, internal_store, flaky_catalog_store, log_store, make_product
    ) -> None:
        """A failed attempt is requeued and the retry succeeds."""
        await internal_store.put(make_product("p1"))
        flaky_catalog_store.failures = 1
        flaky_orchestrator.sync_queue.enqueue("p1", SyncType.CREATE)

        await flaky_orchestrator.processor.process_batch()
        assert len(flaky_orchestrator.sync_queue) == 1
        assert log_store.entries == []

        await flaky_orchestrator.processor.process_batch()
        [log] = log_store.entries
        assert log.status == SyncLogStatus.SUCCESS
        assert log.retry_count == 1
        assert flaky_orchestrator.stats.retry_count == 1
        assert await flaky_catalog_store.count() == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries_log_one_failure(
        self,
        flaky_orchestrator,
        internal_store,
        flaky_catalog_store,
        log_store,
        make_product,
        sync_policy,
    ) -> None:
        """A permanently failing operation is attempted max_retries times then dropped."""
        await internal_store.put(make_product("p1"))
        flaky_catalog_store.failures = 100
        flaky_orchestrator.sync_queue.enqueue("p1", SyncType.CREATE)

        for _ in range(sync_policy.max_retries + 2):
            await flaky_orchestrator.processor.process_batch()

        assert flaky_catalog_store.batch_calls == sync_policy.max_retries
        assert len(flaky_orchestrator.sync_queue) == 0
        [log] = log_store.entries
        assert log.status == SyncLogStatus.FAILED
        assert log.retry_count == sync_policy.max_retries - 1
        assert "deadline exceeded" in (log.error_message or "")
        stats = flaky_orchestrator.stats
        assert stats.error_count == 1
        assert stats.retry_count == sync_policy.max_retries - 1
        assert stats.total_synced == 1

    @pytest.mark.asyncio
    async def test_failure_does_not_block_other_products(
        self, flaky_orchestrator, internal_store, flaky_catalog_store, make_product
    ) -> None:
        """Failures are isolated to the failing operation."""
        await internal_store.put(make_product("p1"))
        await internal_store.put(make_product("p2"))
        flaky_catalog_store.failures = 1
        flaky_orchestrator.sync_queue.enqueue("p1", SyncType.CREATE)
        flaky_orchestrator.sync_queue.enqueue("p2", SyncType.CREATE)

        await flaky_orchestrator.processor.process_batch()
        await flaky_orchestrator.processor.process_batch()

        assert await flaky_catalog_store.count() == 2
        assert flaky_orchestrator.stats.success_count == 2
