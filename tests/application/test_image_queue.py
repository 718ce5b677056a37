"""Tests for the image generation job queue."""

import asyncio
from dataclasses import replace

import pytest

from catalogsync.application.image_queue import ImageJobQueue
from catalogsync.application.locks import KeyedLock
from catalogsync.application.stats import SyncStats
from catalogsync.domain.models import ImageSet, InternalProduct


class BrokenImageGenerator:
    """Image generator with a bug: it raises a non-domain error."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def generate_images(self, product: InternalProduct) -> ImageSet:
        self.calls.append(product.id)
        raise RuntimeError("unexpected payload shape")


class GatedImageGenerator:
    """Image generator that blocks until released."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.calls: list[str] = []

    async def generate_images(self, product: InternalProduct) -> ImageSet:
        self.calls.append(product.id)
        await self.release.wait()
        return ImageSet(primary="https://cdn.example.com/generated/slow.png", provider="stub")


@pytest.fixture
def make_queue(internal_store, catalog_store, sync_policy, clock):
    """Build an image queue around a given generator and policy."""

    def factory(generator, policy=None) -> ImageJobQueue:
        return ImageJobQueue(
            internal_store=internal_store,
            catalog_store=catalog_store,
            generator=generator,
            policy=policy or sync_policy,
            locks=KeyedLock(),
            clock=clock,
            stats=SyncStats(),
        )

    return factory


class TestEnqueue:
    """Tests for ImageJobQueue.enqueue."""

    def test_one_pending_job_per_product(self, make_queue, make_image_generator) -> None:
        """A product already waiting for images is not queued twice."""
        queue = make_queue(make_image_generator())

        assert queue.enqueue("p1")
        assert not queue.enqueue("p1", "entry-1")
        assert len(queue) == 1


class TestProcessNext:
    """Tests for ImageJobQueue.process_next."""

    @pytest.mark.asyncio
    async def test_patches_images_without_version_bump(
        self,
        make_queue,
        make_image_generator,
        internal_store,
        catalog_store,
        transformer,
        make_product,
        now,
    ) -> None:
        """Generated images are written with fresh timestamps and the version untouched."""
        product = make_product("p1")
        await internal_store.put(product)
        entry_id = await catalog_store.insert(transformer.transform(product, now))
        generator = make_image_generator()
        queue = make_queue(generator)
        queue.enqueue("p1", entry_id)

        assert await queue.process_next()

        entry = await catalog_store.get(entry_id)
        assert entry.images.image_generated
        assert entry.images.primary == "https://cdn.example.com/generated/p1-primary.png"
        assert entry.images.last_image_update == now
        assert entry.version == 1
        assert entry.pricing.list_price > 0
        assert queue.stats.images_generated == 1
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_resolves_entry_id_at_execution(
        self,
        make_queue,
        make_image_generator,
        internal_store,
        catalog_store,
        transformer,
        make_product,
        now,
    ) -> None:
        """Jobs queued before the entry existed find it when they run."""
        product = make_product("p1")
        await internal_store.put(product)
        queue = make_queue(make_image_generator())
        queue.enqueue("p1")
        entry_id = await catalog_store.insert(transformer.transform(product, now))

        await queue.process_next()

        assert (await catalog_store.get(entry_id)).images.image_generated

    @pytest.mark.asyncio
    async def test_missing_entry_is_retried(
        self, make_queue, make_image_generator, internal_store, make_product
    ) -> None:
        """A job whose entry does not exist yet goes back on the queue."""
        await internal_store.put(make_product("p1"))
        generator = make_image_generator()
        queue = make_queue(generator)
        queue.enqueue("p1")

        await queue.process_next()

        assert queue.pending_product_ids() == ["p1"]
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_deleted_product_job_is_dropped(self, make_queue, make_image_generator) -> None:
        """Jobs for products removed since queueing are discarded silently."""
        generator = make_image_generator()
        queue = make_queue(generator)
        queue.enqueue("ghost")

        assert await queue.process_next()

        assert len(queue) == 0
        assert generator.calls == []
        assert queue.stats.image_errors == 0

    @pytest.mark.asyncio
    async def test_failures_retry_then_drop(
        self,
        make_queue,
        make_image_generator,
        internal_store,
        catalog_store,
        transformer,
        make_product,
        now,
        sync_policy,
    ) -> None:
        """Failing generation is retried image_max_retries times, then dropped."""
        product = make_product("p1")
        await internal_store.put(product)
        entry_id = await catalog_store.insert(transformer.transform(product, now))
        generator = make_image_generator(failures=100)
        queue = make_queue(generator)
        queue.enqueue("p1", entry_id)

        while len(queue):
            await queue.process_next()

        assert len(generator.calls) == sync_policy.image_max_retries + 1
        assert queue.stats.image_errors == 1
        entry = await catalog_store.get(entry_id)
        assert not entry.images.image_generated

    @pytest.mark.asyncio
    async def test_failure_then_success(
        self,
        make_queue,
        make_image_generator,
        internal_store,
        catalog_store,
        transformer,
        make_product,
        now,
    ) -> None:
        """A transient provider failure recovers on the next attempt."""
        product = make_product("p1")
        await internal_store.put(product)
        entry_id = await catalog_store.insert(transformer.transform(product, now))
        queue = make_queue(make_image_generator(failures=1))
        queue.enqueue("p1", entry_id)

        await queue.process_next()
        await queue.process_next()

        assert (await catalog_store.get(entry_id)).images.image_generated
        assert queue.stats.image_errors == 0

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(
        self, make_queue, internal_store, catalog_store, transformer, make_product, now, sync_policy
    ) -> None:
        """Calls exceeding the image timeout are abandoned and retried."""
        product = make_product("p1")
        await internal_store.put(product)
        entry_id = await catalog_store.insert(transformer.transform(product, now))
        generator = GatedImageGenerator()
        policy = replace(sync_policy, image_timeout_seconds=0.01, image_max_retries=0)
        queue = make_queue(generator, policy)
        queue.enqueue("p1", entry_id)

        await queue.process_next()

        assert generator.calls == ["p1"]
        assert queue.stats.image_errors == 1
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_unexpected_generator_error_is_retried(
        self, make_queue, internal_store, catalog_store, transformer, make_product, now, sync_policy
    ) -> None:
        """Any generator exception goes through the retry budget instead of escaping."""
        product = make_product("p1")
        await internal_store.put(product)
        entry_id = await catalog_store.insert(transformer.transform(product, now))
        generator = BrokenImageGenerator()
        queue = make_queue(generator)
        queue.enqueue("p1", entry_id)

        assert await queue.process_next()
        assert len(queue) == 1

        while len(queue):
            await queue.process_next()

        assert len(generator.calls) == sync_policy.image_max_retries + 1
        assert queue.stats.image_errors == 1
        assert not queue.processing_images

    @pytest.mark.asyncio
    async def test_processor_is_not_reentrant(
        self, make_queue, internal_store, catalog_store, transformer, make_product, now
    ) -> None:
        """A tick arriving while a job runs does nothing."""
        for product_id in ("p1", "p2"):
            product = make_product(product_id)
            await internal_store.put(product)
            await catalog_store.insert(transformer.transform(product, now))
        generator = GatedImageGenerator()
        queue = make_queue(generator)
        queue.enqueue("p1")
        queue.enqueue("p2")

        running = asyncio.create_task(queue.process_next())
        for _ in range(5):
            await asyncio.sleep(0)
        assert queue.processing_images
        assert not await queue.process_next()

        generator.release.set()
        assert await running
        assert generator.calls == ["p1"]
        assert queue.pending_product_ids() == ["p2"]
