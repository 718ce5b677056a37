"""API schemas for the catalog sync service.

Pydantic models for request/response validation and serialization.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from catalogsync.domain.models import PublicCatalogEntry


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: str | None = Field(default=None, description="Field that caused the error")
    message: str = Field(..., description="Error message")


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: list[ErrorDetail] | dict[str, Any] = Field(
        default_factory=list, description="Additional error details"
    )
    request_id: str | None = Field(default=None, description="Request ID for correlation")


class PaginatedResponse(BaseModel):
    """Base paginated response."""

    total: int = Field(..., description="Total number of items")
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Items per page")
    has_more: bool = Field(..., description="Whether there are more pages")


# ============================================================================
# Catalog Schemas
# ============================================================================


class BulkTierSchema(BaseModel):
    min_qty: int
    unit_price: Decimal
    discount: int


class PricingSchema(BaseModel):
    """Customer-facing price block."""

    list_price: Decimal
    discount_price: Decimal
    currency: str
    bulk_pricing: list[BulkTierSchema] = Field(default_factory=list)


class AvailabilitySchema(BaseModel):
    in_stock: bool
    stock_level: int
    stock_status: str
    lead_time: str


class SupplierSchema(BaseModel):
    name: str
    rating: float
    location: str
    verified: bool


class ImagesSchema(BaseModel):
    primary: str
    technical: str
    application: str
    gallery: list[str] = Field(default_factory=list)
    image_generated: bool = False


class CatalogEntrySchema(BaseModel):
    """Public catalog entry as served to storefront clients."""

    id: str | None
    internal_product_id: str
    display_name: str
    customer_description: str
    category: str
    subcategory: str
    pricing: PricingSchema
    availability: AvailabilitySchema
    supplier: SupplierSchema
    images: ImagesSchema
    specifications: dict[str, str] = Field(default_factory=dict)
    industry_applications: list[str] = Field(default_factory=list)
    product_tags: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    search_priority: str
    featured: bool
    trending: bool
    new_product: bool
    version: int
    updated_at: datetime | None = None


class CatalogListResponse(PaginatedResponse):
    """Paginated list of catalog entries."""

    items: list[CatalogEntrySchema]
    total_pages: int
    fallback: bool = Field(default=False, description="Served from fallback data")
    cached: bool = Field(default=False, description="Served from the result cache")


class SearchHitSchema(BaseModel):
    entry: CatalogEntrySchema
    score: float


class SearchResponse(BaseModel):
    """Ranked search results."""

    query: str
    results: list[SearchHitSchema]
    total: int
    suggestions: list[str] = Field(default_factory=list)
    fallback: bool = False


class CategoryStatsSchema(BaseModel):
    count: int
    in_stock: int
    average_price: float


class CategoryStatsResponse(BaseModel):
    categories: dict[str, CategoryStatsSchema]


# ============================================================================
# Sync Schemas
# ============================================================================


class SyncStatsSchema(BaseModel):
    """Cumulative sync counters."""

    total_synced: int
    success_count: int
    error_count: int
    retry_count: int
    success_rate: float
    last_sync_time: datetime | None = None
    images_generated: int
    image_errors: int
    reconciliation_runs: int
    last_reconciliation: datetime | None = None


class SyncHealthResponse(BaseModel):
    """Sync pipeline health snapshot."""

    state: str
    healthy: bool
    stats: SyncStatsSchema
    sync_queue_length: int
    image_queue_length: int
    processing_batch: bool
    processing_images: bool
    listeners_active: int
    coverage: dict[str, Any] = Field(default_factory=dict)


class ReconciliationResponse(BaseModel):
    """Outcome of a reconciliation pass."""

    started_at: datetime
    finished_at: datetime | None = None
    total_products: int
    created: int
    updated: int
    unchanged: int
    duplicates_removed: int
    orphans_queued: int
    queued: int
    errors: int
    batches: int
    duration_ms: float
    error_products: list[str] = Field(default_factory=list)


class SyncProductsRequest(BaseModel):
    """Request to queue products for sync."""

    product_ids: list[str] = Field(..., min_length=1, max_length=500)


class SyncProductsResponse(BaseModel):
    queued: int
    queue_length: int


class ProductSyncStatusSchema(BaseModel):
    """Sync, image and listing status of one internal product."""

    product_id: str
    name: str
    sku: str
    sync_status: str = Field(..., description="synced or not_synced")
    entry_id: str | None = None
    entry_count: int
    last_synced_at: datetime | None = None
    image_status: str = Field(
        ..., description="needs_generation, has_real_image or placeholder"
    )
    eligible: bool
    eligibility_reasons: list[str] = Field(default_factory=list)
    suggested_price: Decimal
    sync_pending: bool


class ProductSyncStatusListResponse(BaseModel):
    """Per-product sync status with summary counts."""

    items: list[ProductSyncStatusSchema]
    total: int
    synced: int
    eligible: int
    needs_images: int


# ============================================================================
# Converters
# ============================================================================


def entry_to_schema(entry: PublicCatalogEntry) -> CatalogEntrySchema:
    """Convert a catalog entry to its response schema."""
    return CatalogEntrySchema(
        id=entry.id,
        internal_product_id=entry.internal_product_id,
        display_name=entry.display_name,
        customer_description=entry.customer_description,
        category=entry.category,
        subcategory=entry.subcategory,
        pricing=PricingSchema(
            list_price=entry.pricing.list_price,
            discount_price=entry.pricing.discount_price,
            currency=entry.pricing.currency,
            bulk_pricing=[
                BulkTierSchema(min_qty=t.min_qty, unit_price=t.unit_price, discount=t.discount)
                for t in entry.pricing.bulk_pricing
            ],
        ),
        availability=AvailabilitySchema(
            in_stock=entry.availability.in_stock,
            stock_level=entry.availability.stock_level,
            stock_status=entry.availability.stock_status.value,
            lead_time=entry.availability.lead_time,
        ),
        supplier=SupplierSchema(
            name=entry.supplier.name,
            rating=entry.supplier.rating,
            location=entry.supplier.location,
            verified=entry.supplier.verified,
        ),
        images=ImagesSchema(
            primary=entry.images.primary,
            technical=entry.images.technical,
            application=entry.images.application,
            gallery=list(entry.images.gallery),
            image_generated=entry.images.image_generated,
        ),
        specifications=dict(entry.specifications),
        industry_applications=list(entry.industry_applications),
        product_tags=list(entry.product_tags),
        keywords=list(entry.seo.keywords),
        search_priority=entry.seo.search_priority.value,
        featured=entry.featured,
        trending=entry.trending,
        new_product=entry.new_product,
        version=entry.version,
        updated_at=entry.updated_at,
    )
