"""Internal product to public catalog entry transformation.

Pure mapping from the product-of-record to the customer-facing view:
pricing, display text, SEO metadata, availability and listing flags.
The only time-dependent fields are the explicit timestamps and the
recency-based flags, both derived from the ``now`` argument.
"""

from collections.abc import Mapping
from datetime import datetime, timedelta
from decimal import Decimal
from urllib.parse import quote

import structlog

from catalogsync.domain.base import round_money, utc_now
from catalogsync.domain.exceptions import TransformationError
from catalogsync.domain.models import (
    Availability,
    BulkPriceTier,
    InternalProduct,
    Pricing,
    ProductImages,
    PublicCatalogEntry,
    SearchPriority,
    SEOMetadata,
    StockStatus,
    SupplierInfo,
    Visibility,
)
from catalogsync.domain.policy import PLACEHOLDER_PATTERNS, CatalogPolicy, PricingPolicy

logger = structlog.get_logger()


# ============================================================================
# Category Tables
# ============================================================================


CATEGORY_QUALIFIERS: dict[str, str] = {
    "electronics": "Professional Grade",
    "hydraulics": "Industrial Hydraulic",
    "pneumatics": "Pneumatic System",
    "automation": "Automation Grade",
    "sensors": "Industrial Sensor",
    "cables": "Industrial Cable",
    "components": "Industrial Component",
}

CATEGORY_NAMES: dict[str, str] = {
    "electronics": "Electronics & Components",
    "hydraulics": "Hydraulic Systems",
    "pneumatics": "Pneumatic Systems",
    "automation": "Automation & Control",
    "sensors": "Sensors & Instrumentation",
    "cables": "Cables & Wiring",
    "components": "Industrial Components",
}

SUBCATEGORY_NAMES: dict[str, str] = {
    "electronics": "Electronic Components",
    "hydraulics": "Hydraulic Components",
    "pneumatics": "Pneumatic Components",
    "automation": "Control Systems",
    "sensors": "Industrial Sensors",
    "cables": "Industrial Cables",
    "components": "General Components",
}

DEFAULT_CATEGORY = "Industrial Equipment"
DEFAULT_SUBCATEGORY = "General Equipment"
DEFAULT_PRODUCT_NAME = "Industrial Product"
POPULAR_CATEGORIES = frozenset({"electronics", "automation", "sensors"})
INDUSTRY_APPLICATIONS = ("Manufacturing", "Industrial", "Professional")

DEFAULT_SUPPLIER = SupplierInfo(
    name="Verified Industrial Supplier",
    rating=4.5,
    location="Malaysia",
    verified=True,
)

MIN_DESCRIPTION_LENGTH = 50
RECENT_UPDATE_WINDOW = timedelta(days=7)

PLACEHOLDER_BASE = "https://via.placeholder.com"
REAL_IMAGE_MARKERS = (
    "oaidalleapi",
    "blob.core.windows.net",
    "generated",
    "ai-image",
    "firebasestorage",
)


# ============================================================================
# Image Helpers
# ============================================================================


def is_placeholder_image(url: str | None, patterns: tuple[str, ...]) -> bool:
    """Check if an image URL is missing or points at a placeholder.

    Args:
        url: Image URL, possibly empty.
        patterns: Substrings identifying placeholder images.

    Returns:
        True if the URL is missing or matches any placeholder pattern.
    """
    if not url:
        return True
    return any(pattern in url for pattern in patterns)


def has_real_image(url: str | None, patterns: tuple[str, ...]) -> bool:
    """Check if an image URL points at a generated or uploaded image."""
    if not url:
        return False
    if any(marker in url for marker in REAL_IMAGE_MARKERS):
        return True
    return url.startswith("https://") and not is_placeholder_image(url, patterns)


def needs_image_generation(product: InternalProduct, patterns: tuple[str, ...]) -> bool:
    """Check if a product should be sent to the image generator.

    Args:
        product: Internal product.
        patterns: Substrings identifying placeholder images.

    Returns:
        True when the product has no real image.
    """
    if is_placeholder_image(product.image_url, patterns):
        return True
    return not has_real_image(product.image_url, patterns)


def placeholder_images(product: InternalProduct) -> ProductImages:
    """Build the placeholder image block used until generation completes."""
    label = quote((product.name or "Product")[:20], safe="")
    return ProductImages(
        primary=f"{PLACEHOLDER_BASE}/400x400/4F46E5/FFFFFF?text={label}",
        technical=f"{PLACEHOLDER_BASE}/400x300/6366F1/FFFFFF?text=Technical+Specs",
        application=f"{PLACEHOLDER_BASE}/400x300/8B5CF6/FFFFFF?text=Industrial+Application",
        gallery=(),
        image_generated=False,
        last_image_update=None,
    )


def _dedupe(values: list[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        cleaned = value.strip().lower()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            result.append(cleaned)
    return tuple(result)


# ============================================================================
# Transformer
# ============================================================================


class CatalogTransformer:
    """Maps internal products to public catalog entries.

    The transformer holds only immutable policy, so one instance is
    shared between reconciliation and the live sync path.

    Example usage:
        transformer = CatalogTransformer(PricingPolicy(), CatalogPolicy())
        entry = transformer.transform(product, now=utc_now())
    """

    def __init__(
        self,
        pricing: PricingPolicy,
        catalog: CatalogPolicy,
        suppliers: Mapping[str, SupplierInfo] | None = None,
        placeholder_patterns: tuple[str, ...] = PLACEHOLDER_PATTERNS,
    ) -> None:
        """Initialize transformer.

        Args:
            pricing: Markup, discount and bulk-tier policy.
            catalog: Featured and new-product thresholds.
            suppliers: Optional directory of public supplier data by supplier id.
            placeholder_patterns: Substrings identifying placeholder images.
        """
        self.pricing_policy = pricing
        self.catalog_policy = catalog
        self.suppliers = dict(suppliers or {})
        self.placeholder_patterns = placeholder_patterns

    def transform(
        self,
        product: InternalProduct,
        now: datetime | None = None,
    ) -> PublicCatalogEntry:
        """Transform an internal product into a catalog entry candidate.

        Args:
            product: Internal product record.
            now: Reference time for timestamps and recency flags.

        Returns:
            PublicCatalogEntry without a store id.

        Raises:
            TransformationError: If the record cannot be mapped even with defaults.
        """
        now = now or utc_now()
        try:
            return PublicCatalogEntry(
                internal_product_id=product.id,
                display_name=self.display_name(product),
                customer_description=self.customer_description(product),
                pricing=self.pricing(product.price),
                availability=self.availability(product.stock, product.min_stock),
                seo=self.seo(product, now),
                supplier=self.supplier(product.supplier_id),
                category=self.map_category(product.category),
                subcategory=self.map_subcategory(product.category),
                industry_applications=INDUSTRY_APPLICATIONS,
                product_tags=_dedupe([product.brand, product.category]),
                specifications=self.specifications(product),
                images=self.initial_images(product),
                visibility=self.visibility(product),
                featured=self.is_featured(product),
                # Owned by storefront analytics; updates never patch it.
                trending=False,
                new_product=self.is_new(product, now),
                version=1,
                created_at=now,
                synced_at=now,
                updated_at=now,
            )
        except (ArithmeticError, TypeError, ValueError) as e:
            logger.error("Product transformation failed", product_id=product.id, error=str(e))
            raise TransformationError(product.id, str(e)) from e

    # ========================================================================
    # Display Text
    # ========================================================================

    def display_name(self, product: InternalProduct) -> str:
        """Build a customer-facing name.

        Prefixes the brand when it is not already part of the name, then
        the category qualifier unless the qualifier text is already present.
        """
        name = product.name.strip() or DEFAULT_PRODUCT_NAME
        brand = product.brand.strip()
        if brand and brand.lower() not in name.lower():
            name = f"{brand} {name}"

        qualifier = CATEGORY_QUALIFIERS.get(product.category.lower())
        if qualifier and qualifier.lower() not in name.lower():
            name = f"{qualifier} {name}"
        return name

    def customer_description(self, product: InternalProduct) -> str:
        """Pass long descriptions through, synthesize short or missing ones."""
        description = product.description.strip()
        if len(description) >= MIN_DESCRIPTION_LENGTH:
            return description

        category = product.category or "industrial"
        brand = product.brand or "trusted manufacturers"
        text = (
            f"High-quality {category} product from {brand}. Suitable for professional "
            f"industrial applications with reliable performance and durability."
        )
        if product.sku:
            text += f" Model/SKU: {product.sku}."
        return text

    @staticmethod
    def map_category(category: str) -> str:
        return CATEGORY_NAMES.get(category.lower(), DEFAULT_CATEGORY)

    @staticmethod
    def map_subcategory(category: str) -> str:
        return SUBCATEGORY_NAMES.get(category.lower(), DEFAULT_SUBCATEGORY)

    # ========================================================================
    # Pricing
    # ========================================================================

    def pricing(self, base_price: Decimal) -> Pricing:
        """Derive list, discount and bulk prices from the base price.

        Args:
            base_price: Internal price; negative values are treated as zero.

        Returns:
            Pricing with all amounts rounded half-up to two decimals.
        """
        policy = self.pricing_policy
        base = base_price if base_price > 0 else Decimal("0")
        list_price = round_money(base * policy.markup_factor)
        discount_price = round_money(list_price * (Decimal("1") - policy.default_discount))
        tiers = tuple(
            BulkPriceTier(
                min_qty=min_qty,
                unit_price=round_money(discount_price * (Decimal("1") - pct)),
                discount=int(round_money(pct * 100)),
            )
            for min_qty, pct in policy.bulk_tiers
        )
        return Pricing(
            list_price=list_price,
            discount_price=discount_price,
            bulk_pricing=tiers,
            currency=policy.currency,
        )

    # ========================================================================
    # Availability
    # ========================================================================

    @staticmethod
    def stock_status(stock: int, min_stock: int) -> StockStatus:
        """Band the stock level against the reorder threshold."""
        if stock <= 0:
            return StockStatus.OUT_OF_STOCK
        if stock <= min_stock:
            return StockStatus.LOW
        if stock <= 2 * min_stock:
            return StockStatus.CRITICAL
        return StockStatus.GOOD

    @staticmethod
    def lead_time(stock: int) -> str:
        if stock > 50:
            return "1-2 business days"
        if stock > 10:
            return "3-5 business days"
        if stock > 0:
            return "5-7 business days"
        return "2-3 weeks"

    def availability(self, stock: int, min_stock: int) -> Availability:
        return Availability(
            in_stock=stock > 0,
            stock_level=stock,
            stock_status=self.stock_status(stock, min_stock),
            lead_time=self.lead_time(stock),
        )

    # ========================================================================
    # SEO
    # ========================================================================

    def seo(self, product: InternalProduct, now: datetime) -> SEOMetadata:
        """Build keyword sets and meta text for search engines and site search."""
        name = product.name.strip() or DEFAULT_PRODUCT_NAME
        category = product.category.lower()
        name_tokens = [token for token in name.lower().split() if len(token) > 2]

        keywords = _dedupe(
            [name, category, product.brand, *name_tokens, "industrial", "malaysia", "professional"]
        )
        search_terms = _dedupe([name, product.sku, product.brand, category])
        category_tags = _dedupe(
            [category or "industrial", self.map_category(product.category), "professional", "quality"]
        )
        category_label = category or "industrial"
        return SEOMetadata(
            keywords=keywords,
            search_terms=search_terms,
            category_tags=category_tags,
            meta_title=f"{name} - Professional {category_label} | HiggsFlow",
            meta_description=(
                f"Professional {category_label} - {name}. High-quality industrial "
                f"equipment from verified Malaysian suppliers."
            ),
            search_priority=self.search_priority(product, now),
        )

    @staticmethod
    def search_priority(product: InternalProduct, now: datetime) -> SearchPriority:
        """Score stock depth, price tier, category popularity and recency.

        Out-of-stock products are hidden from search ranking entirely.
        """
        if product.stock <= 0:
            return SearchPriority.HIDDEN

        score = 0
        if product.stock > 20:
            score += 3
        elif product.stock > 10:
            score += 2
        elif product.stock > 5:
            score += 1

        if Decimal("100") < product.price < Decimal("1000"):
            score += 2
        elif product.price >= Decimal("1000"):
            score += 1

        if product.category.lower() in POPULAR_CATEGORIES:
            score += 2

        touched = product.updated_at or product.date_added
        if touched is not None and timedelta(0) <= now - touched < RECENT_UPDATE_WINDOW:
            score += 1

        if score >= 6:
            return SearchPriority.HIGH
        if score >= 3:
            return SearchPriority.MEDIUM
        return SearchPriority.LOW

    # ========================================================================
    # Supplier, Specifications, Images
    # ========================================================================

    def supplier(self, supplier_id: str | None) -> SupplierInfo:
        if supplier_id and supplier_id in self.suppliers:
            return self.suppliers[supplier_id]
        return DEFAULT_SUPPLIER

    @staticmethod
    def specifications(product: InternalProduct) -> dict[str, str]:
        specs = {
            "sku": product.sku or "Contact for details",
            "brand": product.brand or "Professional Grade",
            "category": product.category or "Industrial",
            "warranty": "1 year manufacturer warranty",
            "compliance": "Industry Standard",
        }
        specs.update(product.specifications)
        return specs

    def initial_images(self, product: InternalProduct) -> ProductImages:
        """Use the product's own real image when it has one, else placeholders."""
        if has_real_image(product.image_url, self.placeholder_patterns):
            url = product.image_url or ""
            return ProductImages(primary=url, gallery=(url,), image_generated=False)
        return placeholder_images(product)

    def needs_images(self, product: InternalProduct) -> bool:
        return needs_image_generation(product, self.placeholder_patterns)

    # ========================================================================
    # Listing Flags
    # ========================================================================

    @staticmethod
    def visibility(product: InternalProduct) -> Visibility:
        if product.stock > 0 and product.status != "pending":
            return Visibility.PUBLIC
        return Visibility.PRIVATE

    @staticmethod
    def listing_issues(product: InternalProduct) -> list[str]:
        """Explain why a product is not fit for the public listing.

        Args:
            product: Internal product.

        Returns:
            Human-readable reasons, empty when the product is listable.
        """
        issues = []
        if not product.name.strip():
            issues.append("Missing product name")
        if product.price <= 0:
            issues.append("Missing price")
        if product.stock <= 0:
            issues.append("Out of stock")
        if product.status == "pending":
            issues.append("Status: pending")
        return issues

    def is_featured(self, product: InternalProduct) -> bool:
        policy = self.catalog_policy
        return (
            product.stock > policy.featured_stock_threshold
            and product.price > policy.featured_price_threshold
        )

    def is_new(self, product: InternalProduct, now: datetime) -> bool:
        if product.date_added is None:
            return False
        return now - product.date_added <= timedelta(days=self.catalog_policy.new_product_days)
