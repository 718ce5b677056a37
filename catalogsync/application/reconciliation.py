"""Full reconciliation pass between the internal store and the catalog.

At orchestrator start the pass writes directly to the catalog in batches,
pausing between batches so the store is not flooded. When triggered
while live sync is running, it only detects drift and hands stale
products to the sync queue, whose processor re-reads current state
under the per-product lock.
"""

from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

import structlog

from catalogsync.application.image_queue import ImageJobQueue
from catalogsync.application.scheduler import Clock
from catalogsync.application.stats import SyncStats
from catalogsync.application.sync_queue import SyncQueue
from catalogsync.catalog.change_detector import ChangeDetector
from catalogsync.catalog.repository import (
    BatchOperation,
    CatalogStore,
    InternalProductStore,
    SyncLogStore,
    primary_entry,
)
from catalogsync.catalog.transformer import CatalogTransformer
from catalogsync.domain.exceptions import StoreError, SyncError, TransformationError
from catalogsync.domain.models import InternalProduct, PublicCatalogEntry, SyncLogEntry
from catalogsync.domain.policy import SyncPolicy
from catalogsync.domain.state_machines import SyncLogStatus, SyncType

logger = structlog.get_logger()


@dataclass
class ReconciliationReport:
    """Summary of one reconciliation pass."""

    started_at: datetime
    finished_at: datetime | None = None
    total_products: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    duplicates_removed: int = 0
    orphans_queued: int = 0
    queued: int = 0
    errors: int = 0
    batches: int = 0
    duration_ms: float = 0.0
    error_products: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class _PlannedWrite:
    product: InternalProduct
    sync_type: SyncType
    operations: list[BatchOperation]
    changed_fields: list[str]
    entry_id: str | None = None
    duplicates: int = 0
    regenerate_images: bool = False


class Reconciler:
    """Compares every internal product with its catalog entry."""

    def __init__(
        self,
        internal_store: InternalProductStore,
        catalog_store: CatalogStore,
        log_store: SyncLogStore,
        transformer: CatalogTransformer,
        detector: ChangeDetector,
        sync_queue: SyncQueue,
        image_queue: ImageJobQueue,
        policy: SyncPolicy,
        clock: Clock,
        stats: SyncStats,
    ) -> None:
        self.internal_store = internal_store
        self.catalog_store = catalog_store
        self.log_store = log_store
        self.transformer = transformer
        self.detector = detector
        self.sync_queue = sync_queue
        self.image_queue = image_queue
        self.policy = policy
        self.clock = clock
        self.stats = stats

    async def run(self, apply_writes: bool = True) -> ReconciliationReport:
        """Run one reconciliation pass.

        Args:
            apply_writes: Write to the catalog directly. When False, stale and
                missing products are queued for the sync processor instead.

        Returns:
            ReconciliationReport with per-outcome counts.

        Raises:
            StoreError: If the initial enumeration of either store fails.
        """
        started = self.clock.monotonic()
        report = ReconciliationReport(started_at=self.clock.now())
        logger.info("Starting reconciliation pass", apply_writes=apply_writes)

        products = await self.internal_store.list_all()
        index = self._index(await self.catalog_store.list_entries())
        report.total_products = len(products)

        known_ids = {product.id for product in products}
        for internal_id in index.keys() - known_ids:
            self.sync_queue.enqueue(
                internal_id, SyncType.DELETE, source="reconciliation", at=self.clock.now()
            )
            report.orphans_queued += 1

        size = self.policy.batch_size
        for start in range(0, len(products), size):
            if start > 0:
                await self.clock.sleep(self.policy.reconciliation_pause_seconds)
            batch = products[start : start + size]
            await self._reconcile_batch(batch, index, report, apply_writes)
            report.batches += 1

        report.finished_at = self.clock.now()
        report.duration_ms = (self.clock.monotonic() - started) * 1000
        self.stats.reconciliation_runs += 1
        self.stats.last_reconciliation = report.finished_at
        logger.info(
            "Reconciliation pass complete",
            total=report.total_products,
            created=report.created,
            updated=report.updated,
            unchanged=report.unchanged,
            queued=report.queued,
            orphans=report.orphans_queued,
            errors=report.errors,
            duration_ms=round(report.duration_ms, 1),
        )
        return report

    @staticmethod
    def _index(entries: list[PublicCatalogEntry]) -> dict[str, list[PublicCatalogEntry]]:
        index: dict[str, list[PublicCatalogEntry]] = defaultdict(list)
        for entry in entries:
            index[entry.internal_product_id].append(entry)
        return dict(index)

    def _plan(
        self,
        product: InternalProduct,
        existing: list[PublicCatalogEntry],
        now: datetime,
    ) -> _PlannedWrite | None:
        candidate = self.transformer.transform(product, now)
        if not existing:
            return _PlannedWrite(
                product=product,
                sync_type=SyncType.CREATE,
                operations=[BatchOperation.insert(candidate)],
                changed_fields=list(candidate.to_document()),
                regenerate_images=self.transformer.needs_images(product),
            )

        primary = primary_entry(existing)
        duplicates = [entry for entry in existing if entry.id != primary.id]
        update = self.detector.diff(candidate, primary, now)
        operations: list[BatchOperation] = []
        if update is not None:
            operations.append(BatchOperation.update(str(primary.id), update.to_document()))
        operations.extend(BatchOperation.delete(str(entry.id)) for entry in duplicates)
        if not operations:
            return None
        return _PlannedWrite(
            product=product,
            sync_type=SyncType.UPDATE,
            operations=operations,
            changed_fields=list(update.changed_fields) if update is not None else [],
            entry_id=primary.id,
            duplicates=len(duplicates),
            regenerate_images=(update is not None and update.regenerate_images)
            or self._awaiting_images(product, primary),
        )

    def _awaiting_images(self, product: InternalProduct, entry: PublicCatalogEntry) -> bool:
        return not entry.images.image_generated and self.transformer.needs_images(product)

    def _queue_pending_images(
        self, product: InternalProduct, existing: list[PublicCatalogEntry]
    ) -> None:
        if not existing:
            return
        primary = primary_entry(existing)
        if self._awaiting_images(product, primary):
            self.image_queue.enqueue(product.id, primary.id)

    async def _reconcile_batch(
        self,
        batch: list[InternalProduct],
        index: dict[str, list[PublicCatalogEntry]],
        report: ReconciliationReport,
        apply_writes: bool,
    ) -> None:
        now = self.clock.now()
        planned: list[_PlannedWrite] = []
        for product in batch:
            try:
                plan = self._plan(product, index.get(product.id, []), now)
            except TransformationError as e:
                report.errors += 1
                report.error_products.append(product.id)
                logger.error("Skipping product in reconciliation", product_id=product.id, error=e.message)
                continue
            if plan is None:
                report.unchanged += 1
                self._queue_pending_images(product, index.get(product.id, []))
            else:
                planned.append(plan)

        if not planned:
            return

        if not apply_writes:
            for plan in planned:
                self._queue(plan, report)
            return

        operations = [op for plan in planned for op in plan.operations]
        try:
            results = await self.catalog_store.write_batch(operations)
        except SyncError as e:
            logger.warning(
                "Batch commit failed, falling back to per-item writes",
                batch_size=len(planned),
                error=e.message,
            )
            for plan in planned:
                await self._write_single(plan, report, now)
            return

        offset = 0
        for plan in planned:
            if plan.sync_type == SyncType.CREATE:
                plan.entry_id = results[offset]
            offset += len(plan.operations)
            await self._record_success(plan, report, now)

    async def _write_single(
        self,
        plan: _PlannedWrite,
        report: ReconciliationReport,
        now: datetime,
    ) -> None:
        try:
            results = await self.catalog_store.write_batch(plan.operations)
        except SyncError as e:
            report.errors += 1
            report.error_products.append(plan.product.id)
            logger.error(
                "Reconciliation write failed, handing to sync queue",
                product_id=plan.product.id,
                error=e.message,
            )
            self._queue(plan, report)
            return
        if plan.sync_type == SyncType.CREATE:
            plan.entry_id = results[0]
        await self._record_success(plan, report, now)

    def _queue(self, plan: _PlannedWrite, report: ReconciliationReport) -> None:
        self.sync_queue.enqueue(
            plan.product.id, plan.sync_type, source="reconciliation", at=self.clock.now()
        )
        report.queued += 1

    async def _record_success(
        self,
        plan: _PlannedWrite,
        report: ReconciliationReport,
        now: datetime,
    ) -> None:
        if plan.sync_type == SyncType.CREATE:
            report.created += 1
        else:
            report.updated += 1
            report.duplicates_removed += plan.duplicates

        if plan.regenerate_images:
            self.image_queue.enqueue(plan.product.id, plan.entry_id)

        self.stats.record_success(now)
        changed = list(plan.changed_fields)
        if plan.duplicates:
            changed.append(f"duplicates_removed:{plan.duplicates}")
        try:
            await self.log_store.append(
                SyncLogEntry(
                    internal_product_id=plan.product.id,
                    ecommerce_product_id=plan.entry_id,
                    sync_type=plan.sync_type,
                    status=SyncLogStatus.SUCCESS,
                    changed_fields=changed,
                    timestamp=now,
                )
            )
        except StoreError as e:
            logger.error("Failed to append sync log", product_id=plan.product.id, error=e.message)
