"""Tests for the product sync orchestrator lifecycle."""

import asyncio
from collections.abc import AsyncGenerator
from dataclasses import replace
from decimal import Decimal

import pytest
import pytest_asyncio

from catalogsync.application.orchestrator import (
    ImageStatus,
    OrchestratorState,
    ProductSyncOrchestrator,
    SyncStatus,
)
from catalogsync.domain.exceptions import OrchestratorStateError, TransientStoreError


@pytest_asyncio.fixture
async def running(
    orchestrator, internal_store, make_product
) -> AsyncGenerator[ProductSyncOrchestrator, None]:
    """Started orchestrator over two seeded products, stopped on teardown."""
    await internal_store.put(make_product("p1"))
    await internal_store.put(make_product("p2", price=Decimal("250")))
    await orchestrator.start()
    yield orchestrator
    await orchestrator.stop()


class TestLifecycle:
    """Tests for start and stop."""

    @pytest.mark.asyncio
    async def test_start_reconciles_and_subscribes(
        self, orchestrator, internal_store, catalog_store, make_product
    ) -> None:
        """Start runs a reconciliation pass, subscribes and starts both timers."""
        await internal_store.put(make_product("p1"))

        report = await orchestrator.start()
        try:
            assert report.created == 1
            assert await catalog_store.count() == 1
            assert orchestrator.state == OrchestratorState.RUNNING
            assert internal_store.listener_count == 1
            assert orchestrator.last_reconciliation is report
        finally:
            await orchestrator.stop()

    @pytest.mark.asyncio
    async def test_double_start_rejected(self, running) -> None:
        """Starting a running orchestrator is an error."""
        with pytest.raises(OrchestratorStateError):
            await running.start()

    @pytest.mark.asyncio
    async def test_stop_unsubscribes(self, running, internal_store, make_product) -> None:
        """After stop no further changes are queued."""
        await running.stop()

        await internal_store.put(make_product("p3"))

        assert running.state == OrchestratorState.STOPPED
        assert internal_store.listener_count == 0
        assert len(running.sync_queue) == 0

    @pytest.mark.asyncio
    async def test_stop_before_start_is_noop(self, orchestrator) -> None:
        """Stopping an idle orchestrator does nothing."""
        await orchestrator.stop()
        assert orchestrator.state == OrchestratorState.IDLE

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, running) -> None:
        """A stopped orchestrator can be started again."""
        await running.stop()

        report = await running.start()

        assert running.is_running
        assert report.unchanged == 2

    @pytest.mark.asyncio
    async def test_changes_during_startup_pass_are_synced(
        self,
        internal_store,
        catalog_store,
        log_store,
        transformer,
        image_generator,
        sync_policy,
        clock,
        make_product,
    ) -> None:
        """An edit made while the startup pass pauses between batches is not lost."""
        policy = replace(sync_policy, batch_size=10, reconciliation_pause_seconds=1.0)
        orchestrator = ProductSyncOrchestrator(
            internal_store=internal_store,
            catalog_store=catalog_store,
            log_store=log_store,
            transformer=transformer,
            image_generator=image_generator,
            policy=policy,
            clock=clock,
        )
        for index in range(11):
            await internal_store.put(make_product(f"p{index}", stock=50))

        starting = asyncio.create_task(orchestrator.start())
        await clock.drain()
        assert orchestrator.state == OrchestratorState.STARTING
        await internal_store.put(make_product("p0", stock=0))
        assert orchestrator.sync_queue.pending_product_ids() == ["p0"]

        await clock.advance(1.0)
        await starting
        try:
            await clock.advance(3.0)

            [entry] = await catalog_store.find_by_internal_id("p0")
            assert entry.availability.stock_level == 0
            assert not entry.is_public
        finally:
            await orchestrator.stop()

    @pytest.mark.asyncio
    async def test_failed_start_leaves_orchestrator_stopped(
        self, orchestrator, internal_store, monkeypatch
    ) -> None:
        """A reconciliation that cannot enumerate the store aborts start."""

        async def broken_list_all():
            raise TransientStoreError("list_all", "unavailable")

        monkeypatch.setattr(internal_store, "list_all", broken_list_all)

        with pytest.raises(TransientStoreError):
            await orchestrator.start()
        assert orchestrator.state == OrchestratorState.STOPPED
        assert internal_store.listener_count == 0


class TestLiveSync:
    """Tests for change-driven sync on the virtual clock."""

    @pytest.mark.asyncio
    async def test_added_product_synced_on_next_tick(
        self, running, internal_store, catalog_store, clock, make_product
    ) -> None:
        """A new product is queued by the listener and written by the next batch."""
        await internal_store.put(make_product("p3"))
        assert running.sync_queue.pending_product_ids() == ["p3"]
        assert running.events_received == 1

        await clock.advance(3.0)

        assert len(await catalog_store.find_by_internal_id("p3")) == 1
        assert len(running.sync_queue) == 0

    @pytest.mark.asyncio
    async def test_removed_product_deleted_on_next_tick(
        self, running, internal_store, catalog_store, clock
    ) -> None:
        """Removing a product deletes its entry."""
        await internal_store.remove("p1")

        await clock.advance(3.0)

        assert await catalog_store.find_by_internal_id("p1") == []
        assert await catalog_store.count() == 1

    @pytest.mark.asyncio
    async def test_burst_of_changes_coalesces(
        self, running, internal_store, catalog_store, log_store, clock, make_product
    ) -> None:
        """Several edits before a tick produce one write reflecting the latest state."""
        for stock in (4, 3, 2):
            await internal_store.put(make_product("p1", stock=stock))
        assert len(running.sync_queue) == 1

        await clock.advance(3.0)

        [entry] = await catalog_store.find_by_internal_id("p1")
        assert entry.availability.stock_level == 2

    @pytest.mark.asyncio
    async def test_images_generated_on_image_tick(
        self, running, catalog_store, clock, image_generator
    ) -> None:
        """Image jobs queued at start run on the slower image timer."""
        assert len(running.image_queue) == 2

        await clock.advance(10.0)

        assert image_generator.calls == ["p1"]
        [entry] = await catalog_store.find_by_internal_id("p1")
        assert entry.images.image_generated
        assert len(running.image_queue) == 1


class TestTriggers:
    """Tests for manual reconcile and sync requests."""

    @pytest.mark.asyncio
    async def test_request_sync_requires_running(self, orchestrator) -> None:
        """Manual sync requests are rejected before start."""
        with pytest.raises(OrchestratorStateError):
            orchestrator.request_sync(["p1"])

    @pytest.mark.asyncio
    async def test_request_sync_queues_distinct_ids(self, running) -> None:
        """Duplicate ids in one request are queued once."""
        queued = running.request_sync(["p1", "p2", "p1"])

        assert queued == 2
        assert running.sync_queue.pending_product_ids() == ["p1", "p2"]

    @pytest.mark.asyncio
    async def test_reconcile_while_running_only_queues(
        self, running, internal_store, catalog_store, make_product
    ) -> None:
        """Drift found during live sync goes through the sync queue."""
        await internal_store.put(make_product("p1", stock=0))

        report = await running.reconcile()

        assert report.queued == 1
        assert report.updated == 0
        [entry] = await catalog_store.find_by_internal_id("p1")
        assert entry.availability.in_stock
        assert running.sync_queue.pending_product_ids() == ["p1"]

    @pytest.mark.asyncio
    async def test_reconcile_when_idle_writes(
        self, orchestrator, internal_store, catalog_store, make_product
    ) -> None:
        """Without live sync, reconcile writes directly."""
        await internal_store.put(make_product("p1"))

        report = await orchestrator.reconcile()

        assert report.created == 1
        assert await catalog_store.count() == 1


class TestObservability:
    """Tests for health and coverage reporting."""

    @pytest.mark.asyncio
    async def test_health_snapshot(self, running) -> None:
        """Health reflects state, counters and queue lengths."""
        health = running.health()

        assert health.state == OrchestratorState.RUNNING
        assert health.is_healthy
        assert health.stats.success_count == 2
        assert health.sync_queue_length == 0
        assert health.image_queue_length == 2
        assert health.listeners_active == 1
        assert not health.processing_batch
        assert health.last_reconciliation is not None

    @pytest.mark.asyncio
    async def test_idle_is_not_healthy(self, orchestrator) -> None:
        """An orchestrator that is not running is unhealthy."""
        assert not orchestrator.health().is_healthy

    @pytest.mark.asyncio
    async def test_coverage(self, running, internal_store, make_product) -> None:
        """Coverage compares catalog entries with internal products."""
        await internal_store.put(make_product("p3"))

        coverage = await running.coverage()

        assert coverage == {"internal_products": 3, "catalog_entries": 2, "coverage": 0.6667}


class TestProductStatuses:
    """Tests for the per-product sync status view."""

    @pytest.mark.asyncio
    async def test_synced_and_pending_products(
        self, running, internal_store, make_product, now
    ) -> None:
        """Synced products show their entry; an unlisted new product shows why."""
        await internal_store.put(make_product("p3", stock=0, status="pending", updated_at=now))

        statuses = await running.product_statuses()

        assert [s.product_id for s in statuses] == ["p3", "p1", "p2"]
        unsynced, synced, _ = statuses
        assert unsynced.sync_status == SyncStatus.NOT_SYNCED
        assert unsynced.entry_id is None
        assert unsynced.image_status == ImageStatus.NEEDS_GENERATION
        assert not unsynced.eligible
        assert unsynced.eligibility_reasons == ["Out of stock", "Status: pending"]
        assert unsynced.sync_pending
        assert synced.sync_status == SyncStatus.SYNCED
        assert synced.entry_id is not None
        assert synced.entry_count == 1
        assert synced.last_synced_at == now
        assert synced.image_status == ImageStatus.PLACEHOLDER
        assert synced.eligible
        assert synced.suggested_price == Decimal("120.00")
        assert not synced.sync_pending

    @pytest.mark.asyncio
    async def test_generated_images_are_real(self, running) -> None:
        """A completed image job moves the product off placeholders."""
        await running.image_queue.process_next()

        statuses = {s.product_id: s for s in await running.product_statuses()}

        assert statuses["p1"].image_status == ImageStatus.HAS_REAL_IMAGE
        assert statuses["p2"].image_status == ImageStatus.PLACEHOLDER

    @pytest.mark.asyncio
    async def test_statuses_without_starting(
        self, orchestrator, internal_store, make_product
    ) -> None:
        """The view only reads, so it works before sync starts."""
        await internal_store.put(make_product("p1", image_url="https://cdn.example.com/p1.jpg"))
        await internal_store.put(make_product("p2"))

        statuses = await orchestrator.product_statuses()

        assert [s.image_status for s in statuses] == [
            ImageStatus.HAS_REAL_IMAGE,
            ImageStatus.NEEDS_GENERATION,
        ]
        assert all(s.sync_status == SyncStatus.NOT_SYNCED for s in statuses)
