"""Image generation job queue.

A lower-priority, single-job-at-a-time processor that asks the image
generation collaborator for product imagery and patches the result into
the catalog entry. Failures are retried a small bounded number of times
and then dropped; the entry keeps its placeholder images.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import structlog

from catalogsync.application.locks import KeyedLock
from catalogsync.application.scheduler import Clock
from catalogsync.application.stats import SyncStats
from catalogsync.catalog.repository import CatalogStore, InternalProductStore, primary_entry
from catalogsync.domain.base import format_timestamp
from catalogsync.domain.exceptions import (
    CatalogEntryNotFoundError,
    ImageGenerationError,
    StoreError,
)
from catalogsync.domain.models import ImageSet, InternalProduct
from catalogsync.domain.policy import SyncPolicy

logger = structlog.get_logger()


class ImageGenerator(Protocol):
    """External image generation collaborator."""

    async def generate_images(self, product: InternalProduct) -> ImageSet:
        """Generate imagery for a product.

        Raises:
            ImageGenerationError: If the provider fails.
        """
        ...


@dataclass
class ImageJob:
    """One pending image generation request.

    Attributes:
        product_id: Internal product the images are for.
        catalog_entry_id: Target entry, resolved at execution time when unknown.
        attempts: Generation attempts made so far.
        enqueued_at: When the job was first queued.
    """

    product_id: str
    catalog_entry_id: str | None = None
    attempts: int = 0
    enqueued_at: datetime | None = None


class ImageJobQueue:
    """FIFO image job queue with a non-reentrant processor.

    Example usage:
        queue = ImageJobQueue(products, catalog, generator, policy, locks, clock, stats)
        queue.enqueue("p1")
        await queue.process_next()
    """

    def __init__(
        self,
        internal_store: InternalProductStore,
        catalog_store: CatalogStore,
        generator: ImageGenerator,
        policy: SyncPolicy,
        locks: KeyedLock,
        clock: Clock,
        stats: SyncStats,
    ) -> None:
        self.internal_store = internal_store
        self.catalog_store = catalog_store
        self.generator = generator
        self.policy = policy
        self.locks = locks
        self.clock = clock
        self.stats = stats
        self._jobs: deque[ImageJob] = deque()
        self.processing_images = False

    def __len__(self) -> int:
        return len(self._jobs)

    def pending_product_ids(self) -> list[str]:
        return [job.product_id for job in self._jobs]

    def enqueue(self, product_id: str, catalog_entry_id: str | None = None) -> bool:
        """Queue an image job unless one is already pending for the product.

        Args:
            product_id: Internal product id.
            catalog_entry_id: Target entry id if already known.

        Returns:
            True if a new job was queued.
        """
        for job in self._jobs:
            if job.product_id == product_id:
                if catalog_entry_id and not job.catalog_entry_id:
                    job.catalog_entry_id = catalog_entry_id
                return False
        self._jobs.append(
            ImageJob(
                product_id=product_id,
                catalog_entry_id=catalog_entry_id,
                enqueued_at=self.clock.now(),
            )
        )
        logger.debug("Image job queued", product_id=product_id, queue_length=len(self._jobs))
        return True

    async def process_next(self) -> bool:
        """Run the job at the head of the queue.

        Returns:
            True if a job was executed, False if idle or already processing.
        """
        if self.processing_images or not self._jobs:
            return False

        self.processing_images = True
        try:
            job = self._jobs.popleft()
            await self._run(job)
            return True
        finally:
            self.processing_images = False

    async def _run(self, job: ImageJob) -> None:
        job.attempts += 1
        try:
            product = await self.internal_store.get(job.product_id)
            if product is None:
                logger.info("Dropping image job for deleted product", product_id=job.product_id)
                return
            entry_id = job.catalog_entry_id or await self._resolve_entry_id(job.product_id)
        except StoreError as e:
            self._handle_failure(job, e.message)
            return

        if entry_id is None:
            self._handle_failure(job, "catalog entry not found")
            return

        started = self.clock.monotonic()
        try:
            image_set = await asyncio.wait_for(
                self.generator.generate_images(product),
                timeout=self.policy.image_timeout_seconds,
            )
        except TimeoutError:
            self._handle_failure(job, "image generation timed out")
            return
        except ImageGenerationError as e:
            self._handle_failure(job, e.message)
            return
        except Exception as e:
            logger.exception("Image generator raised unexpectedly", product_id=job.product_id)
            self._handle_failure(job, str(e) or type(e).__name__)
            return
        elapsed_ms = (self.clock.monotonic() - started) * 1000

        now = self.clock.now()
        stamp = format_timestamp(now)
        try:
            async with self.locks.hold(job.product_id):
                await self.catalog_store.update(
                    entry_id,
                    {
                        "images": image_set.to_product_images(now).to_document(),
                        "syncedAt": stamp,
                        "updatedAt": stamp,
                    },
                )
        except CatalogEntryNotFoundError:
            job.catalog_entry_id = None
            self._handle_failure(job, "catalog entry disappeared before patch")
            return
        except StoreError as e:
            self._handle_failure(job, e.message)
            return

        self.stats.images_generated += 1
        self.stats.image_generation_time_ms += elapsed_ms
        logger.info(
            "Product images generated",
            product_id=job.product_id,
            entry_id=entry_id,
            provider=image_set.provider,
            duration_ms=round(elapsed_ms, 1),
        )

    async def _resolve_entry_id(self, product_id: str) -> str | None:
        entries = await self.catalog_store.find_by_internal_id(product_id)
        if not entries:
            return None
        return primary_entry(entries).id

    def _handle_failure(self, job: ImageJob, reason: str) -> None:
        if job.attempts <= self.policy.image_max_retries:
            self._jobs.append(job)
            logger.warning(
                "Image job failed, retrying",
                product_id=job.product_id,
                attempt=job.attempts,
                reason=reason,
            )
            return

        self.stats.image_errors += 1
        logger.error(
            "Image job dropped after retries",
            product_id=job.product_id,
            attempts=job.attempts,
            reason=reason,
        )
