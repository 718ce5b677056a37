"""SQLAlchemy models for the document tables.

Each table stores one JSON document per row. Columns that stores filter
on (internal product id, visibility) are duplicated out of the document
and indexed.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB

from catalogsync.infrastructure.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
DocumentType = JSON().with_variant(JSONB(), "postgresql")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InternalProductModel(Base):
    """Internal product-of-record document."""

    __tablename__ = "internal_products"

    id = Column(String(100), primary_key=True)
    document = Column(DocumentType, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now, onupdate=_utc_now)


class CatalogEntryModel(Base):
    """Public catalog entry document."""

    __tablename__ = "public_catalog_entries"

    id = Column(String(36), primary_key=True)
    internal_product_id = Column(String(100), nullable=False, index=True)
    visibility = Column(String(20), nullable=False, default="private", index=True)
    document = Column(DocumentType, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now, onupdate=_utc_now)


class SyncLogModel(Base):
    """Append-only sync log record."""

    __tablename__ = "sync_logs"

    id = Column(String(36), primary_key=True)
    internal_product_id = Column(String(100), nullable=False, index=True)
    sync_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, index=True)
    document = Column(DocumentType, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)
