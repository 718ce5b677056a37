"""Fixed fallback catalog served when the public store is unavailable.

The entries are built by the regular transformer from a handful of demo
industrial products, so they have exactly the shape of real entries.
"""

from datetime import datetime, timezone
from decimal import Decimal

from catalogsync.catalog.transformer import CatalogTransformer
from catalogsync.domain.models import InternalProduct, PublicCatalogEntry
from catalogsync.domain.policy import CatalogPolicy, PricingPolicy

FALLBACK_TIMESTAMP = datetime(2024, 1, 1, tzinfo=timezone.utc)

DEMO_PRODUCTS: tuple[InternalProduct, ...] = (
    InternalProduct(
        id="PROD-001",
        name="Hydraulic Pump Model HP-200",
        brand="HydroTech",
        sku="HP-200-STD",
        category="hydraulics",
        description="High-pressure hydraulic pump for industrial applications",
        price=Decimal("850"),
        stock=25,
        min_stock=5,
        supplier_id="SUP-001",
        date_added=FALLBACK_TIMESTAMP,
    ),
    InternalProduct(
        id="PROD-002",
        name="Pneumatic Cylinder PC-150",
        brand="AirForce",
        sku="PC-150-DA",
        category="pneumatics",
        description="Double-acting pneumatic cylinder with magnetic piston",
        price=Decimal("320"),
        stock=12,
        min_stock=3,
        supplier_id="SUP-002",
        date_added=FALLBACK_TIMESTAMP,
    ),
    InternalProduct(
        id="PROD-003",
        name="Industrial Sensor Module",
        brand="SenseTech",
        sku="ISM-300",
        category="sensors",
        description="Multi-parameter industrial sensor for process monitoring",
        price=Decimal("245"),
        stock=8,
        min_stock=2,
        supplier_id="SUP-003",
        date_added=FALLBACK_TIMESTAMP,
    ),
    InternalProduct(
        id="PROD-004",
        name="Cable Assembly CAB-500",
        brand="CableCorp",
        sku="CAB-500-10M",
        category="cables",
        description="Shielded industrial cable assembly, 10 metre length",
        price=Decimal("125"),
        stock=3,
        min_stock=5,
        supplier_id="SUP-004",
        date_added=FALLBACK_TIMESTAMP,
    ),
)


def build_fallback_entries(
    transformer: CatalogTransformer | None = None,
) -> list[PublicCatalogEntry]:
    """Transform the demo products into public catalog entries.

    Args:
        transformer: Transformer to use; default policies when omitted.

    Returns:
        Public entries with stable ``fallback-`` ids.
    """
    transformer = transformer or CatalogTransformer(PricingPolicy(), CatalogPolicy())
    return [
        transformer.transform(product, FALLBACK_TIMESTAMP).with_id(f"fallback-{product.id}")
        for product in DEMO_PRODUCTS
    ]
