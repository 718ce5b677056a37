"""Store interfaces used by the sync core.

The sync pipeline depends only on these protocols. Concrete stores live
in ``catalogsync.infrastructure`` (in-memory and SQLAlchemy backed).
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, Self

from catalogsync.domain.models import (
    InternalProduct,
    PublicCatalogEntry,
    SyncLogEntry,
    Visibility,
)


# ============================================================================
# Change Notifications
# ============================================================================


class ChangeType(str, Enum):
    """Kind of mutation observed on the internal product store."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class ChangeEvent:
    """One internal store mutation delivered to subscribers."""

    change_type: ChangeType
    product_id: str
    product: InternalProduct | None = None


ChangeListener = Callable[[ChangeEvent], None]
Unsubscribe = Callable[[], None]


# ============================================================================
# Batch Writes
# ============================================================================


class BatchOpType(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class BatchOperation:
    """One write inside an atomic catalog batch.

    Attributes:
        op_type: Insert, partial update or delete.
        entry_id: Target entry id (None for inserts).
        document: Full document for inserts, partial fields for updates.
    """

    op_type: BatchOpType
    entry_id: str | None = None
    document: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def insert(cls, entry: PublicCatalogEntry) -> Self:
        return cls(op_type=BatchOpType.INSERT, document=entry.to_document())

    @classmethod
    def update(cls, entry_id: str, fields: dict[str, Any]) -> Self:
        return cls(op_type=BatchOpType.UPDATE, entry_id=entry_id, document=fields)

    @classmethod
    def delete(cls, entry_id: str) -> Self:
        return cls(op_type=BatchOpType.DELETE, entry_id=entry_id)


# ============================================================================
# Store Protocols
# ============================================================================


class InternalProductStore(Protocol):
    """Authoritative product-of-record store. Never written by sync."""

    async def list_all(self) -> list[InternalProduct]:
        """Enumerate every internal product."""
        ...

    async def get(self, product_id: str) -> InternalProduct | None:
        """Look up one product, returning None if it was deleted."""
        ...

    def subscribe(self, on_change: ChangeListener) -> Unsubscribe:
        """Register a change listener.

        Listeners are invoked synchronously and must not block.

        Args:
            on_change: Callback receiving each ChangeEvent.

        Returns:
            Callable that removes the subscription.
        """
        ...


class CatalogStore(Protocol):
    """Public catalog document store. The sync pipeline is its only writer."""

    async def find_by_internal_id(self, internal_product_id: str) -> list[PublicCatalogEntry]:
        """Find every entry referencing an internal product (duplicates included)."""
        ...

    async def get(self, entry_id: str) -> PublicCatalogEntry | None:
        ...

    async def insert(self, entry: PublicCatalogEntry) -> str:
        """Insert an entry and return the store-assigned id."""
        ...

    async def update(self, entry_id: str, fields: dict[str, Any]) -> None:
        """Merge top-level document fields into an existing entry.

        Raises:
            CatalogEntryNotFoundError: If the entry does not exist.
        """
        ...

    async def delete(self, entry_id: str) -> None:
        """Delete an entry. Deleting a missing entry is a no-op."""
        ...

    async def list_entries(
        self,
        visibility: Visibility | None = None,
    ) -> list[PublicCatalogEntry]:
        """List entries, optionally restricted to one visibility."""
        ...

    async def write_batch(self, operations: list[BatchOperation]) -> list[str | None]:
        """Apply operations atomically.

        Returns:
            One element per operation: the new id for inserts, the target id otherwise.
        """
        ...

    async def count(self) -> int:
        ...


class SyncLogStore(Protocol):
    """Append-only audit log of sync outcomes."""

    async def append(self, entry: SyncLogEntry) -> None:
        ...


def primary_entry(entries: list[PublicCatalogEntry]) -> PublicCatalogEntry:
    """Pick the entry to keep when several reference one internal product.

    The oldest entry wins so storefront links stay stable; ties fall back
    to the id for a deterministic choice.
    """
    return min(
        entries,
        key=lambda e: (e.created_at is None, e.created_at or datetime.min, e.id or ""),
    )
