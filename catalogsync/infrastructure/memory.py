"""In-memory document stores.

Used for local development and tests. Documents are deep-copied on the
way in and out so callers observe the same isolation a real document
store gives them. The internal product store pushes change events to
subscribers synchronously on every mutation.
"""

import copy
from typing import Any
from uuid import uuid4

import structlog

from catalogsync.catalog.repository import (
    BatchOperation,
    BatchOpType,
    ChangeEvent,
    ChangeListener,
    ChangeType,
    Unsubscribe,
)
from catalogsync.domain.exceptions import CatalogEntryNotFoundError
from catalogsync.domain.models import (
    InternalProduct,
    PublicCatalogEntry,
    SyncLogEntry,
    Visibility,
)

logger = structlog.get_logger()


# ============================================================================
# Internal Product Store
# ============================================================================


class InMemoryInternalProductStore:
    """Internal product store with push-style change notifications."""

    def __init__(self, products: list[InternalProduct] | None = None) -> None:
        """Initialize store.

        Args:
            products: Optional initial products. Seeding does not notify.
        """
        self._documents: dict[str, dict[str, Any]] = {
            p.id: p.to_document() for p in products or []
        }
        self._listeners: list[ChangeListener] = []

    async def list_all(self) -> list[InternalProduct]:
        return [
            InternalProduct.from_document(product_id, copy.deepcopy(doc))
            for product_id, doc in self._documents.items()
        ]

    async def get(self, product_id: str) -> InternalProduct | None:
        doc = self._documents.get(product_id)
        if doc is None:
            return None
        return InternalProduct.from_document(product_id, copy.deepcopy(doc))

    def subscribe(self, on_change: ChangeListener) -> Unsubscribe:
        self._listeners.append(on_change)

        def unsubscribe() -> None:
            if on_change in self._listeners:
                self._listeners.remove(on_change)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def put(self, product: InternalProduct) -> None:
        """Create or replace a product and notify subscribers.

        Args:
            product: Product to store.
        """
        change_type = ChangeType.MODIFIED if product.id in self._documents else ChangeType.ADDED
        self._documents[product.id] = product.to_document()
        self._notify(ChangeEvent(change_type=change_type, product_id=product.id, product=product))

    async def remove(self, product_id: str) -> None:
        """Delete a product and notify subscribers if it existed."""
        if self._documents.pop(product_id, None) is None:
            return
        self._notify(ChangeEvent(change_type=ChangeType.REMOVED, product_id=product_id))

    def _notify(self, event: ChangeEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Change listener failed",
                    product_id=event.product_id,
                    change_type=event.change_type.value,
                )


# ============================================================================
# Catalog Store
# ============================================================================


class InMemoryCatalogStore:
    """Public catalog document store kept in a dict.

    Batch writes are atomic: either every operation applies or none do.
    """

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}

    async def find_by_internal_id(self, internal_product_id: str) -> list[PublicCatalogEntry]:
        return [
            PublicCatalogEntry.from_document(entry_id, copy.deepcopy(doc))
            for entry_id, doc in self._documents.items()
            if doc.get("internalProductId") == internal_product_id
        ]

    async def get(self, entry_id: str) -> PublicCatalogEntry | None:
        doc = self._documents.get(entry_id)
        if doc is None:
            return None
        return PublicCatalogEntry.from_document(entry_id, copy.deepcopy(doc))

    async def insert(self, entry: PublicCatalogEntry) -> str:
        entry_id = str(uuid4())
        self._documents[entry_id] = entry.to_document()
        return entry_id

    async def update(self, entry_id: str, fields: dict[str, Any]) -> None:
        if entry_id not in self._documents:
            raise CatalogEntryNotFoundError(entry_id)
        self._documents[entry_id].update(copy.deepcopy(fields))

    async def delete(self, entry_id: str) -> None:
        self._documents.pop(entry_id, None)

    async def list_entries(
        self,
        visibility: Visibility | None = None,
    ) -> list[PublicCatalogEntry]:
        return [
            PublicCatalogEntry.from_document(entry_id, copy.deepcopy(doc))
            for entry_id, doc in self._documents.items()
            if visibility is None or doc.get("visibility") == visibility.value
        ]

    async def write_batch(self, operations: list[BatchOperation]) -> list[str | None]:
        """Apply a batch of writes atomically.

        Args:
            operations: Writes to apply in order.

        Returns:
            New ids for inserts, target ids for updates and deletes.

        Raises:
            CatalogEntryNotFoundError: If an update targets a missing entry.
        """
        staged = copy.deepcopy(self._documents)
        results: list[str | None] = []
        for op in operations:
            if op.op_type == BatchOpType.INSERT:
                entry_id = str(uuid4())
                staged[entry_id] = copy.deepcopy(op.document)
                results.append(entry_id)
            elif op.op_type == BatchOpType.UPDATE:
                if op.entry_id not in staged:
                    raise CatalogEntryNotFoundError(str(op.entry_id))
                staged[op.entry_id].update(copy.deepcopy(op.document))
                results.append(op.entry_id)
            else:
                staged.pop(str(op.entry_id), None)
                results.append(op.entry_id)
        self._documents = staged
        return results

    async def count(self) -> int:
        return len(self._documents)


# ============================================================================
# Sync Log Store
# ============================================================================


class InMemorySyncLogStore:
    """Append-only sync log kept in a list."""

    def __init__(self) -> None:
        self._entries: list[SyncLogEntry] = []

    async def append(self, entry: SyncLogEntry) -> None:
        self._entries.append(entry)

    @property
    def entries(self) -> list[SyncLogEntry]:
        return list(self._entries)
