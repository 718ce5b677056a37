"""Catalog domain records.

InternalProduct is the read-only product-of-record input. PublicCatalogEntry
is the derived, customer-facing view written to the public catalog store.
Both convert to and from the camelCase document layout used by the stores.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Self
from uuid import uuid4

from catalogsync.domain.base import (
    ValueObject,
    format_timestamp,
    money_to_document,
    parse_timestamp,
    to_decimal,
    to_non_negative_int,
    utc_now,
)
from catalogsync.domain.state_machines import SyncLogStatus, SyncType


# ============================================================================
# Enumerations
# ============================================================================


class StockStatus(str, Enum):
    """Customer-facing stock band."""

    GOOD = "good"
    LOW = "low"
    CRITICAL = "critical"
    OUT_OF_STOCK = "out_of_stock"


class Visibility(str, Enum):
    """Whether an entry is shown to storefront queries."""

    PUBLIC = "public"
    PRIVATE = "private"


class SearchPriority(str, Enum):
    """Ranking band used by storefront search."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    HIDDEN = "hidden"


def _enum_or_default(enum_cls: type[Enum], value: Any, default: Enum) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _str_tuple(values: Any) -> tuple[str, ...]:
    if not isinstance(values, (list, tuple)):
        return ()
    return tuple(str(v) for v in values if v is not None)


# ============================================================================
# Internal Product
# ============================================================================


@dataclass(frozen=True)
class InternalProduct:
    """Product-of-record as maintained by the internal inventory system.

    Attributes:
        id: Internal product identifier.
        name: Internal product name.
        brand: Manufacturer or brand name.
        sku: Stock keeping unit.
        category: Raw internal category key (e.g., "hydraulics").
        description: Internal description, possibly empty.
        price: Base price in the base currency.
        stock: Units on hand (never negative).
        min_stock: Reorder threshold (never negative).
        status: Lifecycle status ("active", "pending", ...).
        supplier_id: Reference into the supplier directory.
        date_added: When the product was first recorded.
        updated_at: Last modification time in the internal store.
        image_url: Existing image, which may be a placeholder.
        specifications: Free-form technical attributes.
    """

    id: str
    name: str = ""
    brand: str = ""
    sku: str = ""
    category: str = ""
    description: str = ""
    price: Decimal = Decimal("0")
    stock: int = 0
    min_stock: int = 0
    status: str = "active"
    supplier_id: str | None = None
    date_added: datetime | None = None
    updated_at: datetime | None = None
    image_url: str | None = None
    specifications: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_document(cls, product_id: str, doc: dict[str, Any]) -> Self:
        """Build a product from a stored document.

        Malformed values are coerced to safe defaults rather than rejected.

        Args:
            product_id: Document identifier.
            doc: Raw document body.

        Returns:
            InternalProduct instance.
        """
        specs = doc.get("specifications")
        return cls(
            id=str(product_id),
            name=str(doc.get("name") or ""),
            brand=str(doc.get("brand") or ""),
            sku=str(doc.get("sku") or ""),
            category=str(doc.get("category") or ""),
            description=str(doc.get("description") or ""),
            price=to_decimal(doc.get("price")),
            stock=to_non_negative_int(doc.get("stock")),
            min_stock=to_non_negative_int(doc.get("minStock")),
            status=str(doc.get("status") or "active"),
            supplier_id=doc.get("supplierId") or None,
            date_added=parse_timestamp(doc.get("dateAdded")),
            updated_at=parse_timestamp(doc.get("updatedAt")),
            image_url=doc.get("imageUrl") or None,
            specifications=(
                {str(k): str(v) for k, v in specs.items() if v is not None}
                if isinstance(specs, dict)
                else {}
            ),
        )

    def to_document(self) -> dict[str, Any]:
        """Render the product as a stored document."""
        return {
            "name": self.name,
            "brand": self.brand,
            "sku": self.sku,
            "category": self.category,
            "description": self.description,
            "price": float(self.price),
            "stock": self.stock,
            "minStock": self.min_stock,
            "status": self.status,
            "supplierId": self.supplier_id,
            "dateAdded": format_timestamp(self.date_added),
            "updatedAt": format_timestamp(self.updated_at),
            "imageUrl": self.image_url,
            "specifications": dict(self.specifications),
        }


# ============================================================================
# Public Catalog Value Objects
# ============================================================================


@dataclass(frozen=True)
class BulkPriceTier(ValueObject):
    """Volume price break.

    Attributes:
        min_qty: Minimum order quantity for the tier.
        unit_price: Per-unit price at this tier.
        discount: Percentage off the discount price (e.g., 5 for 5%).
    """

    min_qty: int
    unit_price: Decimal
    discount: int

    def to_document(self) -> dict[str, Any]:
        return {
            "minQty": self.min_qty,
            "unitPrice": money_to_document(self.unit_price),
            "discount": self.discount,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Self:
        return cls(
            min_qty=to_non_negative_int(doc.get("minQty")),
            unit_price=to_decimal(doc.get("unitPrice")),
            discount=to_non_negative_int(doc.get("discount")),
        )


@dataclass(frozen=True)
class Pricing(ValueObject):
    """Customer-facing pricing block."""

    list_price: Decimal
    discount_price: Decimal
    bulk_pricing: tuple[BulkPriceTier, ...] = ()
    currency: str = "MYR"

    def to_document(self) -> dict[str, Any]:
        return {
            "listPrice": money_to_document(self.list_price),
            "discountPrice": money_to_document(self.discount_price),
            "bulkPricing": [tier.to_document() for tier in self.bulk_pricing],
            "currency": self.currency,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Self:
        tiers = doc.get("bulkPricing") or []
        return cls(
            list_price=to_decimal(doc.get("listPrice")),
            discount_price=to_decimal(doc.get("discountPrice")),
            bulk_pricing=tuple(
                BulkPriceTier.from_document(t) for t in tiers if isinstance(t, dict)
            ),
            currency=str(doc.get("currency") or "MYR"),
        )


@dataclass(frozen=True)
class ProductImages(ValueObject):
    """Image set attached to a catalog entry."""

    primary: str = ""
    technical: str = ""
    application: str = ""
    gallery: tuple[str, ...] = ()
    image_generated: bool = False
    last_image_update: datetime | None = None

    def to_document(self) -> dict[str, Any]:
        return {
            "primary": self.primary,
            "technical": self.technical,
            "application": self.application,
            "gallery": list(self.gallery),
            "imageGenerated": self.image_generated,
            "lastImageUpdate": format_timestamp(self.last_image_update),
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Self:
        return cls(
            primary=str(doc.get("primary") or ""),
            technical=str(doc.get("technical") or ""),
            application=str(doc.get("application") or ""),
            gallery=_str_tuple(doc.get("gallery")),
            image_generated=bool(doc.get("imageGenerated", False)),
            last_image_update=parse_timestamp(doc.get("lastImageUpdate")),
        )


@dataclass(frozen=True)
class SEOMetadata(ValueObject):
    """Search and SEO metadata derived from product text."""

    keywords: tuple[str, ...] = ()
    search_terms: tuple[str, ...] = ()
    category_tags: tuple[str, ...] = ()
    meta_title: str = ""
    meta_description: str = ""
    search_priority: SearchPriority = SearchPriority.LOW

    def to_document(self) -> dict[str, Any]:
        return {
            "keywords": list(self.keywords),
            "searchTerms": list(self.search_terms),
            "categoryTags": list(self.category_tags),
            "metaTitle": self.meta_title,
            "metaDescription": self.meta_description,
            "searchPriority": self.search_priority.value,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Self:
        return cls(
            keywords=_str_tuple(doc.get("keywords")),
            search_terms=_str_tuple(doc.get("searchTerms")),
            category_tags=_str_tuple(doc.get("categoryTags")),
            meta_title=str(doc.get("metaTitle") or ""),
            meta_description=str(doc.get("metaDescription") or ""),
            search_priority=_enum_or_default(
                SearchPriority, doc.get("searchPriority"), SearchPriority.LOW
            ),
        )


@dataclass(frozen=True)
class Availability(ValueObject):
    """Stock availability as shown to customers."""

    in_stock: bool
    stock_level: int
    stock_status: StockStatus
    lead_time: str

    def to_document(self) -> dict[str, Any]:
        return {
            "inStock": self.in_stock,
            "stockLevel": self.stock_level,
            "stockStatus": self.stock_status.value,
            "leadTime": self.lead_time,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Self:
        return cls(
            in_stock=bool(doc.get("inStock", False)),
            stock_level=to_non_negative_int(doc.get("stockLevel")),
            stock_status=_enum_or_default(
                StockStatus, doc.get("stockStatus"), StockStatus.OUT_OF_STOCK
            ),
            lead_time=str(doc.get("leadTime") or ""),
        )


@dataclass(frozen=True)
class SupplierInfo(ValueObject):
    """Public-safe subset of supplier data."""

    name: str
    rating: float
    location: str
    verified: bool

    def to_document(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "rating": self.rating,
            "location": self.location,
            "verified": self.verified,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Self:
        try:
            rating = float(doc.get("rating") or 0)
        except (TypeError, ValueError):
            rating = 0.0
        return cls(
            name=str(doc.get("name") or ""),
            rating=rating,
            location=str(doc.get("location") or ""),
            verified=bool(doc.get("verified", False)),
        )


@dataclass(frozen=True)
class CatalogAnalytics(ValueObject):
    """Engagement counters maintained by the storefront, never by sync."""

    views: int = 0
    clicks: int = 0
    inquiries: int = 0
    conversions: int = 0

    def to_document(self) -> dict[str, Any]:
        return {
            "views": self.views,
            "clicks": self.clicks,
            "inquiries": self.inquiries,
            "conversions": self.conversions,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Self:
        return cls(
            views=to_non_negative_int(doc.get("views")),
            clicks=to_non_negative_int(doc.get("clicks")),
            inquiries=to_non_negative_int(doc.get("inquiries")),
            conversions=to_non_negative_int(doc.get("conversions")),
        )


# ============================================================================
# Public Catalog Entry
# ============================================================================


@dataclass
class PublicCatalogEntry:
    """Customer-facing catalog record derived from one internal product.

    Entries are created, updated and deleted only by the sync pipeline.
    The id is assigned by the catalog store on insert and is None for
    freshly transformed candidates.
    """

    internal_product_id: str
    display_name: str
    customer_description: str
    pricing: Pricing
    availability: Availability
    seo: SEOMetadata
    supplier: SupplierInfo
    category: str
    subcategory: str
    industry_applications: tuple[str, ...] = ()
    product_tags: tuple[str, ...] = ()
    specifications: dict[str, str] = field(default_factory=dict)
    images: ProductImages = field(default_factory=ProductImages)
    visibility: Visibility = Visibility.PRIVATE
    featured: bool = False
    trending: bool = False
    new_product: bool = False
    analytics: CatalogAnalytics = field(default_factory=CatalogAnalytics)
    version: int = 1
    created_at: datetime | None = None
    synced_at: datetime | None = None
    updated_at: datetime | None = None
    id: str | None = None

    @property
    def is_public(self) -> bool:
        """Check if the entry is visible to storefront queries."""
        return self.visibility == Visibility.PUBLIC

    def with_id(self, entry_id: str) -> "PublicCatalogEntry":
        """Return a copy bound to a store-assigned id."""
        return replace(self, id=entry_id)

    def to_document(self) -> dict[str, Any]:
        """Render the entry as a stored document (without its id).

        Returns:
            Dictionary with camelCase keys.
        """
        return {
            "internalProductId": self.internal_product_id,
            "displayName": self.display_name,
            "customerDescription": self.customer_description,
            "pricing": self.pricing.to_document(),
            "availability": self.availability.to_document(),
            "seo": self.seo.to_document(),
            "supplier": self.supplier.to_document(),
            "category": self.category,
            "subcategory": self.subcategory,
            "industryApplications": list(self.industry_applications),
            "productTags": list(self.product_tags),
            "specifications": dict(self.specifications),
            "images": self.images.to_document(),
            "visibility": self.visibility.value,
            "featured": self.featured,
            "trending": self.trending,
            "newProduct": self.new_product,
            "analytics": self.analytics.to_document(),
            "version": self.version,
            "createdAt": format_timestamp(self.created_at),
            "syncedAt": format_timestamp(self.synced_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_document(cls, entry_id: str, doc: dict[str, Any]) -> Self:
        """Build an entry from a stored document.

        Args:
            entry_id: Store-assigned document id.
            doc: Raw document body.

        Returns:
            PublicCatalogEntry instance.
        """
        specs = doc.get("specifications")
        return cls(
            id=str(entry_id),
            internal_product_id=str(doc.get("internalProductId") or ""),
            display_name=str(doc.get("displayName") or ""),
            customer_description=str(doc.get("customerDescription") or ""),
            pricing=Pricing.from_document(doc.get("pricing") or {}),
            availability=Availability.from_document(doc.get("availability") or {}),
            seo=SEOMetadata.from_document(doc.get("seo") or {}),
            supplier=SupplierInfo.from_document(doc.get("supplier") or {}),
            category=str(doc.get("category") or ""),
            subcategory=str(doc.get("subcategory") or ""),
            industry_applications=_str_tuple(doc.get("industryApplications")),
            product_tags=_str_tuple(doc.get("productTags")),
            specifications=(
                {str(k): str(v) for k, v in specs.items()} if isinstance(specs, dict) else {}
            ),
            images=ProductImages.from_document(doc.get("images") or {}),
            visibility=_enum_or_default(Visibility, doc.get("visibility"), Visibility.PRIVATE),
            featured=bool(doc.get("featured", False)),
            trending=bool(doc.get("trending", False)),
            new_product=bool(doc.get("newProduct", False)),
            analytics=CatalogAnalytics.from_document(doc.get("analytics") or {}),
            version=to_non_negative_int(doc.get("version")) or 1,
            created_at=parse_timestamp(doc.get("createdAt")),
            synced_at=parse_timestamp(doc.get("syncedAt")),
            updated_at=parse_timestamp(doc.get("updatedAt")),
        )


# ============================================================================
# Images
# ============================================================================


@dataclass(frozen=True)
class ImageSet:
    """Result of one image generation call."""

    primary: str
    technical: str = ""
    application: str = ""
    gallery: tuple[str, ...] = ()
    provider: str = "unknown"

    def to_product_images(self, generated_at: datetime) -> ProductImages:
        """Convert to the catalog image block.

        Args:
            generated_at: Timestamp recorded as last_image_update.

        Returns:
            ProductImages marked as generated.
        """
        gallery = self.gallery or tuple(
            url for url in (self.primary, self.technical, self.application) if url
        )
        return ProductImages(
            primary=self.primary,
            technical=self.technical,
            application=self.application,
            gallery=gallery,
            image_generated=True,
            last_image_update=generated_at,
        )


# ============================================================================
# Sync Log
# ============================================================================


@dataclass
class SyncLogEntry:
    """Append-only record of one terminal sync outcome."""

    internal_product_id: str
    sync_type: SyncType
    status: SyncLogStatus
    ecommerce_product_id: str | None = None
    changed_fields: list[str] = field(default_factory=list)
    retry_count: int = 0
    processing_time_ms: float = 0.0
    error_message: str | None = None
    timestamp: datetime = field(default_factory=utc_now)
    sync_id: str = field(default_factory=lambda: str(uuid4()))

    def to_document(self) -> dict[str, Any]:
        """Render the log entry as a stored document."""
        return {
            "syncId": self.sync_id,
            "internalProductId": self.internal_product_id,
            "ecommerceProductId": self.ecommerce_product_id,
            "syncType": self.sync_type.value,
            "status": self.status.value,
            "changedFields": list(self.changed_fields),
            "retryCount": self.retry_count,
            "processingTimeMs": round(self.processing_time_ms, 3),
            "errorMessage": self.error_message,
            "timestamp": format_timestamp(self.timestamp),
        }
