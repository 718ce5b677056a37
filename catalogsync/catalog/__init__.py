"""Catalog transformation, change detection and storefront reads."""

from catalogsync.catalog.change_detector import ChangeDetector, FieldUpdate
from catalogsync.catalog.reader import CatalogFilters, CatalogPage, CatalogReader, SortOption
from catalogsync.catalog.repository import (
    BatchOperation,
    CatalogStore,
    ChangeEvent,
    ChangeType,
    InternalProductStore,
    SyncLogStore,
)
from catalogsync.catalog.transformer import CatalogTransformer

__all__ = [
    # Transformation
    "CatalogTransformer",
    "ChangeDetector",
    "FieldUpdate",
    # Stores
    "BatchOperation",
    "CatalogStore",
    "ChangeEvent",
    "ChangeType",
    "InternalProductStore",
    "SyncLogStore",
    # Reader
    "CatalogFilters",
    "CatalogPage",
    "CatalogReader",
    "SortOption",
]
