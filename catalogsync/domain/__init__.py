"""Domain layer - models, value objects, policies, state machines.

Example usage:
    from catalogsync.domain import InternalProduct, PricingPolicy

    product = InternalProduct(id="p1", name="Bearing", price=Decimal("100"), stock=10)
    policy = PricingPolicy()
"""

from catalogsync.domain.exceptions import (
    CatalogEntryNotFoundError,
    ConfigurationError,
    ImageGenerationError,
    InvalidStateTransitionError,
    OrchestratorStateError,
    PermanentStoreError,
    ProductNotFoundError,
    StoreError,
    SyncError,
    TransformationError,
    TransientStoreError,
)
from catalogsync.domain.models import (
    Availability,
    BulkPriceTier,
    CatalogAnalytics,
    ImageSet,
    InternalProduct,
    Pricing,
    ProductImages,
    PublicCatalogEntry,
    SearchPriority,
    SEOMetadata,
    StockStatus,
    SupplierInfo,
    SyncLogEntry,
    Visibility,
)
from catalogsync.domain.policy import CatalogPolicy, PricingPolicy, SyncPolicy
from catalogsync.domain.state_machines import SyncItemStatus, SyncLogStatus, SyncType

__all__ = [
    # Models
    "Availability",
    "BulkPriceTier",
    "CatalogAnalytics",
    "ImageSet",
    "InternalProduct",
    "Pricing",
    "ProductImages",
    "PublicCatalogEntry",
    "SearchPriority",
    "SEOMetadata",
    "StockStatus",
    "SupplierInfo",
    "SyncLogEntry",
    "Visibility",
    # Policies
    "CatalogPolicy",
    "PricingPolicy",
    "SyncPolicy",
    # State machines
    "SyncItemStatus",
    "SyncLogStatus",
    "SyncType",
    # Exceptions
    "CatalogEntryNotFoundError",
    "ConfigurationError",
    "ImageGenerationError",
    "InvalidStateTransitionError",
    "OrchestratorStateError",
    "PermanentStoreError",
    "ProductNotFoundError",
    "StoreError",
    "SyncError",
    "TransformationError",
    "TransientStoreError",
]
