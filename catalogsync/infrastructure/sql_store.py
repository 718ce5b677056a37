"""SQLAlchemy backed document stores.

The internal product store has no push notifications in SQL, so
subscriptions are emulated by polling: each poll compares the current
documents against the previous snapshot and emits added, modified and
removed events. The first poll only records the baseline.
"""

import asyncio
import copy
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalogsync.catalog.repository import (
    BatchOperation,
    BatchOpType,
    ChangeEvent,
    ChangeListener,
    ChangeType,
    Unsubscribe,
)
from catalogsync.domain.exceptions import (
    CatalogEntryNotFoundError,
    PermanentStoreError,
    StoreError,
    TransientStoreError,
)
from catalogsync.domain.models import (
    InternalProduct,
    PublicCatalogEntry,
    SyncLogEntry,
    Visibility,
)
from catalogsync.infrastructure.database import session_scope
from catalogsync.infrastructure.models import (
    CatalogEntryModel,
    InternalProductModel,
    SyncLogModel,
)

logger = structlog.get_logger()


def _translate_error(operation: str, exc: SQLAlchemyError) -> StoreError:
    """Classify a SQLAlchemy error as transient or permanent."""
    if isinstance(exc, IntegrityError):
        return PermanentStoreError(operation, str(exc.orig or exc))
    if isinstance(exc, OperationalError) or (
        isinstance(exc, DBAPIError) and exc.connection_invalidated
    ):
        return TransientStoreError(operation, str(exc))
    return PermanentStoreError(operation, str(exc))


class _SqlStore:
    """Shared session handling for SQL stores."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with session_scope(self._session_factory) as session:
                yield session
        except SQLAlchemyError as e:
            logger.warning("Store operation failed", operation=operation, error=str(e))
            raise _translate_error(operation, e) from e


# ============================================================================
# Internal Product Store
# ============================================================================


class SqlInternalProductStore(_SqlStore):
    """Internal product store with poll-based change subscriptions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        poll_interval_seconds: float = 5.0,
    ) -> None:
        """Initialize store.

        Args:
            session_factory: Async session factory.
            poll_interval_seconds: Delay between change polls while subscribed.
        """
        super().__init__(session_factory)
        self.poll_interval_seconds = poll_interval_seconds
        self._listeners: list[ChangeListener] = []
        self._snapshot: dict[str, dict[str, Any]] | None = None
        self._poll_task: asyncio.Task[None] | None = None

    async def list_all(self) -> list[InternalProduct]:
        """List every product.

        While subscribed with no snapshot yet, the listing becomes the change
        baseline so edits made after it are reported by the next poll.
        """
        documents = await self._load_documents()
        if self._listeners and self._snapshot is None:
            self._snapshot = copy.deepcopy(documents)
        return [InternalProduct.from_document(pid, doc) for pid, doc in documents.items()]

    async def get(self, product_id: str) -> InternalProduct | None:
        async with self._session("get_product") as session:
            row = await session.get(InternalProductModel, product_id)
            if row is None:
                return None
            return InternalProduct.from_document(row.id, copy.deepcopy(row.document))

    async def put(self, product: InternalProduct) -> None:
        """Create or replace a product document."""
        async with self._session("put_product") as session:
            row = await session.get(InternalProductModel, product.id)
            if row is None:
                session.add(InternalProductModel(id=product.id, document=product.to_document()))
            else:
                row.document = product.to_document()

    async def remove(self, product_id: str) -> None:
        async with self._session("remove_product") as session:
            await session.execute(
                delete(InternalProductModel).where(InternalProductModel.id == product_id)
            )

    def subscribe(self, on_change: ChangeListener) -> Unsubscribe:
        """Register a listener and start polling if this is the first one."""
        self._listeners.append(on_change)
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

        def unsubscribe() -> None:
            if on_change in self._listeners:
                self._listeners.remove(on_change)
            if not self._listeners and self._poll_task is not None:
                self._poll_task.cancel()
                self._poll_task = None
                self._snapshot = None

        return unsubscribe

    async def poll_once(self) -> list[ChangeEvent]:
        """Compare current documents with the last snapshot and notify listeners.

        Returns:
            Events emitted by this poll (empty on the baseline poll).
        """
        current = await self._load_documents()
        previous = self._snapshot
        self._snapshot = current
        if previous is None:
            return []

        events: list[ChangeEvent] = []
        for product_id, doc in current.items():
            if product_id not in previous:
                change_type = ChangeType.ADDED
            elif previous[product_id] != doc:
                change_type = ChangeType.MODIFIED
            else:
                continue
            events.append(
                ChangeEvent(
                    change_type=change_type,
                    product_id=product_id,
                    product=InternalProduct.from_document(product_id, doc),
                )
            )
        for product_id in previous.keys() - current.keys():
            events.append(ChangeEvent(change_type=ChangeType.REMOVED, product_id=product_id))

        for event in events:
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    logger.exception(
                        "Change listener failed",
                        product_id=event.product_id,
                        change_type=event.change_type.value,
                    )
        return events

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.poll_once()
            except StoreError as e:
                logger.warning("Change poll failed", error=e.message)
            await asyncio.sleep(self.poll_interval_seconds)

    async def _load_documents(self) -> dict[str, dict[str, Any]]:
        async with self._session("list_products") as session:
            result = await session.execute(select(InternalProductModel))
            return {row.id: copy.deepcopy(row.document) for row in result.scalars()}


# ============================================================================
# Catalog Store
# ============================================================================


class SqlCatalogStore(_SqlStore):
    """Public catalog store with transactional batch writes."""

    async def find_by_internal_id(self, internal_product_id: str) -> list[PublicCatalogEntry]:
        async with self._session("find_by_internal_id") as session:
            result = await session.execute(
                select(CatalogEntryModel).where(
                    CatalogEntryModel.internal_product_id == internal_product_id
                )
            )
            return [self._to_entry(row) for row in result.scalars()]

    async def get(self, entry_id: str) -> PublicCatalogEntry | None:
        async with self._session("get_entry") as session:
            row = await session.get(CatalogEntryModel, entry_id)
            return self._to_entry(row) if row is not None else None

    async def insert(self, entry: PublicCatalogEntry) -> str:
        async with self._session("insert") as session:
            return self._add(session, entry.to_document())

    async def update(self, entry_id: str, fields: dict[str, Any]) -> None:
        async with self._session("update") as session:
            await self._merge(session, entry_id, fields)

    async def delete(self, entry_id: str) -> None:
        async with self._session("delete") as session:
            await session.execute(delete(CatalogEntryModel).where(CatalogEntryModel.id == entry_id))

    async def list_entries(
        self,
        visibility: Visibility | None = None,
    ) -> list[PublicCatalogEntry]:
        query = select(CatalogEntryModel)
        if visibility is not None:
            query = query.where(CatalogEntryModel.visibility == visibility.value)
        async with self._session("list_entries") as session:
            result = await session.execute(query)
            return [self._to_entry(row) for row in result.scalars()]

    async def write_batch(self, operations: list[BatchOperation]) -> list[str | None]:
        """Apply all operations in a single transaction."""
        results: list[str | None] = []
        async with self._session("write_batch") as session:
            for op in operations:
                if op.op_type == BatchOpType.INSERT:
                    results.append(self._add(session, op.document))
                elif op.op_type == BatchOpType.UPDATE:
                    await self._merge(session, str(op.entry_id), op.document)
                    results.append(op.entry_id)
                else:
                    await session.execute(
                        delete(CatalogEntryModel).where(CatalogEntryModel.id == op.entry_id)
                    )
                    results.append(op.entry_id)
            await session.flush()
        return results

    async def count(self) -> int:
        async with self._session("count") as session:
            result = await session.execute(select(func.count()).select_from(CatalogEntryModel))
            return int(result.scalar_one())

    @staticmethod
    def _add(session: AsyncSession, document: dict[str, Any]) -> str:
        entry_id = str(uuid4())
        session.add(
            CatalogEntryModel(
                id=entry_id,
                internal_product_id=document.get("internalProductId", ""),
                visibility=document.get("visibility", Visibility.PRIVATE.value),
                document=copy.deepcopy(document),
            )
        )
        return entry_id

    @staticmethod
    async def _merge(session: AsyncSession, entry_id: str, fields: dict[str, Any]) -> None:
        row = await session.get(CatalogEntryModel, entry_id)
        if row is None:
            raise CatalogEntryNotFoundError(entry_id)
        # Assign a new dict so the JSON column is flagged dirty
        document = copy.deepcopy(row.document)
        document.update(copy.deepcopy(fields))
        row.document = document
        row.visibility = document.get("visibility", row.visibility)

    @staticmethod
    def _to_entry(row: CatalogEntryModel) -> PublicCatalogEntry:
        return PublicCatalogEntry.from_document(row.id, copy.deepcopy(row.document))


# ============================================================================
# Sync Log Store
# ============================================================================


class SqlSyncLogStore(_SqlStore):
    """Append-only sync log table."""

    async def append(self, entry: SyncLogEntry) -> None:
        async with self._session("append_sync_log") as session:
            session.add(
                SyncLogModel(
                    id=entry.sync_id,
                    internal_product_id=entry.internal_product_id,
                    sync_type=entry.sync_type.value,
                    status=entry.status.value,
                    document=entry.to_document(),
                )
            )

    async def list_for_product(self, internal_product_id: str) -> list[dict[str, Any]]:
        """Read log documents for one product, oldest first."""
        async with self._session("list_sync_logs") as session:
            result = await session.execute(
                select(SyncLogModel)
                .where(SyncLogModel.internal_product_id == internal_product_id)
                .order_by(SyncLogModel.created_at)
            )
            return [copy.deepcopy(row.document) for row in result.scalars()]
