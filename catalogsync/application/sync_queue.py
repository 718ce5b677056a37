"""Sync queue and batch processor.

Operations are queued from store change events and from reconciliation,
then drained in fixed-size batches. Every attempt re-reads the current
internal product and catalog state, so a retry never replays a stale
write and queued operations only say *which* product needs syncing.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

import structlog

from catalogsync.application.image_queue import ImageJobQueue
from catalogsync.application.locks import KeyedLock
from catalogsync.application.scheduler import Clock
from catalogsync.application.stats import SyncStats
from catalogsync.catalog.change_detector import ChangeDetector
from catalogsync.catalog.repository import (
    BatchOperation,
    CatalogStore,
    InternalProductStore,
    SyncLogStore,
    primary_entry,
)
from catalogsync.catalog.transformer import CatalogTransformer
from catalogsync.domain.exceptions import StoreError
from catalogsync.domain.models import SyncLogEntry
from catalogsync.domain.policy import SyncPolicy
from catalogsync.domain.state_machines import (
    SyncItemStatus,
    SyncLogStatus,
    SyncType,
    validate_sync_transition,
)

logger = structlog.get_logger()


# ============================================================================
# Queue
# ============================================================================


@dataclass
class SyncOperation:
    """One queued sync request for an internal product.

    Attributes:
        product_id: Internal product id.
        sync_type: Requested operation; the processor decides the actual write
            from current state.
        status: Lifecycle state.
        attempts: Processing attempts made so far.
        source: What queued the operation ("listener", "reconciliation", "manual").
        last_error: Error message from the latest failed attempt.
    """

    product_id: str
    sync_type: SyncType
    status: SyncItemStatus = SyncItemStatus.QUEUED
    attempts: int = 0
    source: str = "listener"
    last_error: str | None = None
    enqueued_at: datetime | None = None
    operation_id: str = field(default_factory=lambda: str(uuid4()))

    def transition(self, target: SyncItemStatus) -> None:
        """Move to a new state.

        Raises:
            InvalidStateTransitionError: If the transition is not allowed.
        """
        validate_sync_transition(self.operation_id, self.status, target)
        self.status = target


class SyncQueue:
    """FIFO queue of sync operations, coalesced per product while queued."""

    def __init__(self) -> None:
        self._items: deque[SyncOperation] = deque()
        self._queued: dict[str, SyncOperation] = {}

    def __len__(self) -> int:
        return len(self._items)

    def pending_product_ids(self) -> list[str]:
        return [op.product_id for op in self._items]

    def enqueue(
        self,
        product_id: str,
        sync_type: SyncType,
        source: str = "listener",
        at: datetime | None = None,
    ) -> SyncOperation:
        """Queue a sync operation, merging with a pending one for the same product.

        A delete supersedes any pending create or update. A create stays a
        create when later updates arrive before it is processed.

        Args:
            product_id: Internal product id.
            sync_type: Requested operation.
            source: What triggered the request.
            at: Enqueue timestamp.

        Returns:
            The queued (possibly pre-existing) operation.
        """
        pending = self._queued.get(product_id)
        if pending is not None:
            if sync_type == SyncType.DELETE or pending.sync_type == SyncType.DELETE:
                pending.sync_type = sync_type
            return pending

        op = SyncOperation(product_id=product_id, sync_type=sync_type, source=source, enqueued_at=at)
        self._items.append(op)
        self._queued[product_id] = op
        return op

    def take(self, limit: int) -> list[SyncOperation]:
        """Remove up to ``limit`` operations from the head and mark them processing."""
        batch: list[SyncOperation] = []
        while self._items and len(batch) < limit:
            op = self._items.popleft()
            if self._queued.get(op.product_id) is op:
                del self._queued[op.product_id]
            op.transition(SyncItemStatus.PROCESSING)
            batch.append(op)
        return batch

    def requeue(self, op: SyncOperation) -> None:
        """Put a failed operation back at the tail for another attempt."""
        op.transition(SyncItemStatus.QUEUED)
        self._items.append(op)
        self._queued.setdefault(op.product_id, op)


# ============================================================================
# Batch Processor
# ============================================================================


@dataclass
class SyncOutcome:
    """What a successful attempt actually wrote."""

    sync_type: SyncType
    entry_id: str | None
    changed_fields: list[str] = field(default_factory=list)


class SyncProcessor:
    """Drains the sync queue in batches with bounded retry.

    Example usage:
        processor = SyncProcessor(queue, products, catalog, logs, transformer,
                                  detector, images, policy, locks, clock, stats)
        await processor.process_batch()
    """

    def __init__(
        self,
        queue: SyncQueue,
        internal_store: InternalProductStore,
        catalog_store: CatalogStore,
        log_store: SyncLogStore,
        transformer: CatalogTransformer,
        detector: ChangeDetector,
        image_queue: ImageJobQueue,
        policy: SyncPolicy,
        locks: KeyedLock,
        clock: Clock,
        stats: SyncStats,
    ) -> None:
        self.queue = queue
        self.internal_store = internal_store
        self.catalog_store = catalog_store
        self.log_store = log_store
        self.transformer = transformer
        self.detector = detector
        self.image_queue = image_queue
        self.policy = policy
        self.locks = locks
        self.clock = clock
        self.stats = stats
        self._processing = False

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def process_batch(self) -> int:
        """Process up to ``batch_size`` queued operations concurrently.

        Returns:
            Number of operations attempted (0 if idle or already running).
        """
        if self._processing or not self.queue:
            return 0

        self._processing = True
        try:
            batch = self.queue.take(self.policy.batch_size)
            logger.debug("Processing sync batch", size=len(batch), remaining=len(self.queue))
            await asyncio.gather(*(self._process(op) for op in batch))
            return len(batch)
        finally:
            self._processing = False

    async def _process(self, op: SyncOperation) -> None:
        op.attempts += 1
        started = self.clock.monotonic()
        try:
            async with self.locks.hold(op.product_id):
                outcome = await self.sync_product(op.product_id)
        except Exception as e:
            op.last_error = str(e)
            await self._handle_failure(op, started)
            return

        op.transition(SyncItemStatus.COMPLETED)
        self.stats.record_success(self.clock.now())
        await self._write_log(
            SyncLogEntry(
                internal_product_id=op.product_id,
                ecommerce_product_id=outcome.entry_id,
                sync_type=outcome.sync_type,
                status=SyncLogStatus.SUCCESS,
                changed_fields=outcome.changed_fields,
                retry_count=op.attempts - 1,
                processing_time_ms=self._elapsed_ms(started),
                timestamp=self.clock.now(),
            )
        )
        logger.info(
            "Product synced",
            product_id=op.product_id,
            sync_type=outcome.sync_type.value,
            entry_id=outcome.entry_id,
            changed_fields=outcome.changed_fields,
            attempts=op.attempts,
        )

    async def _handle_failure(self, op: SyncOperation, started: float) -> None:
        if op.attempts < self.policy.max_retries:
            self.stats.retry_count += 1
            self.queue.requeue(op)
            logger.warning(
                "Sync attempt failed, requeued",
                product_id=op.product_id,
                attempt=op.attempts,
                max_retries=self.policy.max_retries,
                error=op.last_error,
            )
            return

        op.transition(SyncItemStatus.FAILED)
        self.stats.record_failure(self.clock.now())
        await self._write_log(
            SyncLogEntry(
                internal_product_id=op.product_id,
                sync_type=op.sync_type,
                status=SyncLogStatus.FAILED,
                retry_count=op.attempts - 1,
                processing_time_ms=self._elapsed_ms(started),
                error_message=op.last_error,
                timestamp=self.clock.now(),
            )
        )
        logger.error(
            "Sync operation failed after retries",
            product_id=op.product_id,
            sync_type=op.sync_type.value,
            attempts=op.attempts,
            error=op.last_error,
        )

    async def sync_product(self, product_id: str) -> SyncOutcome:
        """Bring the catalog in line with the current state of one product.

        Callers must hold the product's lock.

        Args:
            product_id: Internal product id.

        Returns:
            SyncOutcome describing the write performed.

        Raises:
            StoreError: If a store read or write fails.
            TransformationError: If the product cannot be transformed.
        """
        product = await self.internal_store.get(product_id)
        existing = await self.catalog_store.find_by_internal_id(product_id)

        if product is None:
            if existing:
                await self.catalog_store.write_batch(
                    [BatchOperation.delete(str(entry.id)) for entry in existing]
                )
            return SyncOutcome(
                sync_type=SyncType.DELETE,
                entry_id=existing[0].id if existing else None,
                changed_fields=[f"deleted:{len(existing)}"] if existing else [],
            )

        now = self.clock.now()
        candidate = self.transformer.transform(product, now)

        if not existing:
            [entry_id] = await self.catalog_store.write_batch([BatchOperation.insert(candidate)])
            if self.transformer.needs_images(product):
                self.image_queue.enqueue(product_id, entry_id)
            return SyncOutcome(
                sync_type=SyncType.CREATE,
                entry_id=entry_id,
                changed_fields=list(candidate.to_document()),
            )

        primary = primary_entry(existing)
        duplicates = [entry for entry in existing if entry.id != primary.id]
        update = self.detector.diff(candidate, primary, now)

        writes: list[BatchOperation] = []
        if update is not None:
            writes.append(BatchOperation.update(str(primary.id), update.to_document()))
        writes.extend(BatchOperation.delete(str(entry.id)) for entry in duplicates)
        if writes:
            await self.catalog_store.write_batch(writes)

        awaiting_images = (
            not primary.images.image_generated and self.transformer.needs_images(product)
        )
        if (update is not None and update.regenerate_images) or awaiting_images:
            self.image_queue.enqueue(product_id, primary.id)

        changed = list(update.changed_fields) if update is not None else []
        if duplicates:
            changed.append(f"duplicates_removed:{len(duplicates)}")
        return SyncOutcome(sync_type=SyncType.UPDATE, entry_id=primary.id, changed_fields=changed)

    async def _write_log(self, entry: SyncLogEntry) -> None:
        try:
            await self.log_store.append(entry)
        except StoreError as e:
            logger.error(
                "Failed to append sync log",
                product_id=entry.internal_product_id,
                sync_id=entry.sync_id,
                error=e.message,
            )

    def _elapsed_ms(self, started: float) -> float:
        return (self.clock.monotonic() - started) * 1000
