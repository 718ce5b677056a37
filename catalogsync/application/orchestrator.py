"""Product sync orchestrator.

Owns the sync lifecycle for one catalog: the initial reconciliation pass,
the store change subscription and the two periodic processors. Instances
are constructed explicitly by the composition root; nothing here is a
process-wide singleton.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

import structlog

from catalogsync.application.image_queue import ImageGenerator, ImageJobQueue
from catalogsync.application.locks import KeyedLock
from catalogsync.application.reconciliation import Reconciler, ReconciliationReport
from catalogsync.application.scheduler import Clock, PeriodicTask, SystemClock
from catalogsync.application.stats import SyncStats
from catalogsync.application.sync_queue import SyncProcessor, SyncQueue
from catalogsync.catalog.change_detector import ChangeDetector
from catalogsync.catalog.repository import (
    CatalogStore,
    ChangeEvent,
    ChangeType,
    InternalProductStore,
    SyncLogStore,
    Unsubscribe,
    primary_entry,
)
from catalogsync.catalog.transformer import CatalogTransformer
from catalogsync.domain.exceptions import OrchestratorStateError
from catalogsync.domain.models import InternalProduct, PublicCatalogEntry
from catalogsync.domain.policy import SyncPolicy
from catalogsync.domain.state_machines import SyncType

logger = structlog.get_logger()

_CHANGE_TO_SYNC: dict[ChangeType, SyncType] = {
    ChangeType.ADDED: SyncType.CREATE,
    ChangeType.MODIFIED: SyncType.UPDATE,
    ChangeType.REMOVED: SyncType.DELETE,
}


class OrchestratorState(str, Enum):
    """Orchestrator lifecycle states."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass
class SyncHealth:
    """Point-in-time view of sync health."""

    state: OrchestratorState
    stats: SyncStats
    sync_queue_length: int
    image_queue_length: int
    processing_batch: bool
    processing_images: bool
    listeners_active: int
    last_reconciliation: ReconciliationReport | None = None

    @property
    def is_healthy(self) -> bool:
        """Running with no more failures than successes."""
        return (
            self.state == OrchestratorState.RUNNING
            and self.stats.error_count <= self.stats.success_count
        )


class SyncStatus(str, Enum):
    """Whether a product has a catalog entry."""

    SYNCED = "synced"
    NOT_SYNCED = "not_synced"


class ImageStatus(str, Enum):
    """Image state of a product as shown in the catalog.

    PLACEHOLDER means placeholders are listed while a generation job waits
    in the image queue. NEEDS_GENERATION means no real image and no job.
    """

    NEEDS_GENERATION = "needs_generation"
    HAS_REAL_IMAGE = "has_real_image"
    PLACEHOLDER = "placeholder"


@dataclass
class ProductSyncStatus:
    """Per-product view joining the internal record with its catalog entry.

    Attributes:
        product_id: Internal product id.
        name: Internal product name.
        sku: Stock keeping unit.
        sync_status: Whether a catalog entry exists.
        entry_id: Id of the entry kept for the product, if any.
        entry_count: Number of entries referencing the product.
        last_synced_at: When the kept entry was last written by sync.
        image_status: Image state of the product in the catalog.
        eligible: True when the product is fit for the public listing.
        eligibility_reasons: Why it is not, empty when eligible.
        suggested_price: List price the catalog would publish.
        sync_pending: An operation for the product is waiting in the sync queue.
    """

    product_id: str
    name: str
    sku: str
    sync_status: SyncStatus
    entry_id: str | None
    entry_count: int
    last_synced_at: datetime | None
    image_status: ImageStatus
    eligible: bool
    eligibility_reasons: list[str]
    suggested_price: Decimal
    sync_pending: bool


class ProductSyncOrchestrator:
    """Keeps the public catalog in sync with the internal product store.

    Example usage:
        orchestrator = ProductSyncOrchestrator(
            internal_store=products,
            catalog_store=catalog,
            log_store=logs,
            transformer=CatalogTransformer(PricingPolicy(), CatalogPolicy()),
            image_generator=PlaceholderImageGenerator(),
            policy=SyncPolicy(),
        )
        await orchestrator.start()
        ...
        await orchestrator.stop()
    """

    def __init__(
        self,
        internal_store: InternalProductStore,
        catalog_store: CatalogStore,
        log_store: SyncLogStore,
        transformer: CatalogTransformer,
        image_generator: ImageGenerator,
        policy: SyncPolicy,
        clock: Clock | None = None,
        detector: ChangeDetector | None = None,
    ) -> None:
        """Initialize orchestrator and wire its queues and processors.

        Args:
            internal_store: Product-of-record store (read-only).
            catalog_store: Public catalog store (sole writer).
            log_store: Sync audit log.
            transformer: Shared product transformer.
            image_generator: External image generation collaborator.
            policy: Batch sizes, retry limits and timer intervals.
            clock: Time source; SystemClock when omitted.
            detector: Change detector; default grouping when omitted.
        """
        self.internal_store = internal_store
        self.catalog_store = catalog_store
        self.transformer = transformer
        self.policy = policy
        self.clock = clock or SystemClock()
        self.stats = SyncStats()
        self.locks = KeyedLock()

        self.sync_queue = SyncQueue()
        self.image_queue = ImageJobQueue(
            internal_store=internal_store,
            catalog_store=catalog_store,
            generator=image_generator,
            policy=policy,
            locks=self.locks,
            clock=self.clock,
            stats=self.stats,
        )
        detector = detector or ChangeDetector()
        self.processor = SyncProcessor(
            queue=self.sync_queue,
            internal_store=internal_store,
            catalog_store=catalog_store,
            log_store=log_store,
            transformer=transformer,
            detector=detector,
            image_queue=self.image_queue,
            policy=policy,
            locks=self.locks,
            clock=self.clock,
            stats=self.stats,
        )
        self.reconciler = Reconciler(
            internal_store=internal_store,
            catalog_store=catalog_store,
            log_store=log_store,
            transformer=transformer,
            detector=detector,
            sync_queue=self.sync_queue,
            image_queue=self.image_queue,
            policy=policy,
            clock=self.clock,
            stats=self.stats,
        )

        self._sync_task = PeriodicTask(
            "sync-batch", policy.sync_interval_seconds, self.processor.process_batch, self.clock
        )
        self._image_task = PeriodicTask(
            "image-jobs", policy.image_interval_seconds, self._process_image_job, self.clock
        )
        self._unsubscribers: list[Unsubscribe] = []
        self._accepting = False
        self.state = OrchestratorState.IDLE
        self.last_reconciliation: ReconciliationReport | None = None
        self.events_received = 0
        self.events_ignored = 0

    @property
    def is_running(self) -> bool:
        return self.state == OrchestratorState.RUNNING

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def start(self) -> ReconciliationReport:
        """Subscribe to changes, reconcile and start both processors.

        Returns:
            Report of the initial reconciliation pass.

        Raises:
            OrchestratorStateError: If already started.
            StoreError: If the initial reconciliation cannot enumerate the stores.
        """
        if self.state not in (OrchestratorState.IDLE, OrchestratorState.STOPPED):
            raise OrchestratorStateError("start", self.state.value)

        self.state = OrchestratorState.STARTING
        logger.info("Starting product sync", batch_size=self.policy.batch_size)
        # Subscribe first: changes made during the pass wait in the sync queue.
        self._accepting = True
        self._unsubscribers.append(self.internal_store.subscribe(self._on_change))
        try:
            report = await self.reconciler.run(apply_writes=True)
        except Exception:
            self._release_subscriptions()
            self.state = OrchestratorState.STOPPED
            raise
        self.last_reconciliation = report

        self._sync_task.start()
        self._image_task.start()
        self.state = OrchestratorState.RUNNING
        logger.info(
            "Product sync running",
            sync_interval=self.policy.sync_interval_seconds,
            image_interval=self.policy.image_interval_seconds,
        )
        return report

    async def stop(self) -> None:
        """Stop accepting events, unsubscribe and let in-flight work finish."""
        if self.state != OrchestratorState.RUNNING:
            return

        self.state = OrchestratorState.STOPPING
        self._release_subscriptions()

        await self._sync_task.stop()
        await self._image_task.stop()
        self.state = OrchestratorState.STOPPED
        logger.info(
            "Product sync stopped",
            pending_sync=len(self.sync_queue),
            pending_images=len(self.image_queue),
            total_synced=self.stats.total_synced,
        )

    def _release_subscriptions(self) -> None:
        self._accepting = False
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    # ========================================================================
    # Triggers
    # ========================================================================

    def _on_change(self, event: ChangeEvent) -> None:
        """Store listener: enqueue and return without awaiting anything."""
        if not self._accepting:
            self.events_ignored += 1
            return
        self.events_received += 1
        self.sync_queue.enqueue(
            event.product_id,
            _CHANGE_TO_SYNC[event.change_type],
            source="listener",
            at=self.clock.now(),
        )
        logger.debug(
            "Queued product change",
            product_id=event.product_id,
            change_type=event.change_type.value,
            queue_length=len(self.sync_queue),
        )

    async def reconcile(self) -> ReconciliationReport:
        """Re-run reconciliation on demand.

        While running, drift is handed to the sync queue so writes stay
        serialised with live updates; otherwise writes are applied directly.
        """
        if self.state in (OrchestratorState.STARTING, OrchestratorState.STOPPING):
            raise OrchestratorStateError("reconcile", self.state.value)
        report = await self.reconciler.run(apply_writes=not self.is_running)
        self.last_reconciliation = report
        return report

    def request_sync(self, product_ids: list[str]) -> int:
        """Queue products for sync on demand.

        Args:
            product_ids: Internal product ids.

        Returns:
            Number of distinct products queued.
        """
        if not self.is_running:
            raise OrchestratorStateError("request sync", self.state.value)
        unique_ids = list(dict.fromkeys(product_ids))
        for product_id in unique_ids:
            self.sync_queue.enqueue(
                product_id, SyncType.UPDATE, source="manual", at=self.clock.now()
            )
        return len(unique_ids)

    async def _process_image_job(self) -> None:
        await self.image_queue.process_next()

    # ========================================================================
    # Observability
    # ========================================================================

    async def coverage(self) -> dict[str, Any]:
        """Compare internal and catalog record counts."""
        internal_count = len(await self.internal_store.list_all())
        catalog_count = await self.catalog_store.count()
        ratio = catalog_count / internal_count if internal_count else 1.0
        return {
            "internal_products": internal_count,
            "catalog_entries": catalog_count,
            "coverage": round(min(ratio, 1.0), 4),
        }

    async def product_statuses(self) -> list[ProductSyncStatus]:
        """Join every internal product with its catalog entry and queue state.

        Reads both stores once and writes nothing, so it is safe while the
        processors run.

        Returns:
            One status per internal product, most recently updated first.
        """
        products = await self.internal_store.list_all()
        entries_by_product: dict[str, list[PublicCatalogEntry]] = {}
        for entry in await self.catalog_store.list_entries():
            entries_by_product.setdefault(entry.internal_product_id, []).append(entry)
        queued_images = set(self.image_queue.pending_product_ids())
        queued_syncs = set(self.sync_queue.pending_product_ids())

        products = sorted(products, key=lambda p: p.id)
        products.sort(
            key=lambda p: (p.updated_at is not None, p.updated_at or datetime.min), reverse=True
        )
        statuses = []
        for product in products:
            entries = entries_by_product.get(product.id, [])
            entry = primary_entry(entries) if entries else None
            reasons = self.transformer.listing_issues(product)
            statuses.append(
                ProductSyncStatus(
                    product_id=product.id,
                    name=product.name,
                    sku=product.sku,
                    sync_status=SyncStatus.SYNCED if entry is not None else SyncStatus.NOT_SYNCED,
                    entry_id=entry.id if entry is not None else None,
                    entry_count=len(entries),
                    last_synced_at=entry.synced_at if entry is not None else None,
                    image_status=self._image_status(product, entry, queued_images),
                    eligible=not reasons,
                    eligibility_reasons=reasons,
                    suggested_price=self.transformer.pricing(product.price).list_price,
                    sync_pending=product.id in queued_syncs,
                )
            )
        return statuses

    def _image_status(
        self,
        product: InternalProduct,
        entry: PublicCatalogEntry | None,
        queued_images: set[str],
    ) -> ImageStatus:
        if not self.transformer.needs_images(product):
            return ImageStatus.HAS_REAL_IMAGE
        if entry is not None and entry.images.image_generated:
            return ImageStatus.HAS_REAL_IMAGE
        if entry is not None and product.id in queued_images:
            return ImageStatus.PLACEHOLDER
        return ImageStatus.NEEDS_GENERATION

    def health(self) -> SyncHealth:
        """Snapshot counters and queue state without pausing the pipeline."""
        return SyncHealth(
            state=self.state,
            stats=self.stats,
            sync_queue_length=len(self.sync_queue),
            image_queue_length=len(self.image_queue),
            processing_batch=self.processor.is_processing,
            processing_images=self.image_queue.processing_images,
            listeners_active=len(self._unsubscribers),
            last_reconciliation=self.last_reconciliation,
        )
