"""Application configuration.

Loads settings from environment variables with sensible defaults and
turns them into the validated policy objects used by the sync core.
"""

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings

from catalogsync.domain.policy import CatalogPolicy, PricingPolicy, SyncPolicy


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Stores
    store_backend: str = Field(default="memory", pattern="^(memory|sql)$")
    database_url: str = "postgresql+asyncpg://higgsflow:higgsflow_dev_password@db:5432/catalog"
    poll_interval_seconds: float = 5.0
    seed_demo_products: bool = True

    # Image generation service (placeholder images when unset)
    image_service_url: str | None = None
    image_timeout_seconds: float = 60.0

    # Pricing
    markup_factor: float = 1.20
    default_discount: float = 0.10
    bulk_breakpoints: list[int] = [10, 25, 50, 100]
    bulk_discounts: list[float] = [0.05, 0.10, 0.15, 0.20]
    currency: str = "MYR"

    # Merchandising
    featured_stock_threshold: int = 20
    featured_price_threshold: float = 500.0
    new_product_days: int = 30

    # Sync queues
    sync_batch_size: int = 10
    sync_max_retries: int = 3
    sync_interval_seconds: float = 3.0
    image_interval_seconds: float = 10.0
    image_max_retries: int = 2
    reconciliation_pause_seconds: float = 0.5

    # Catalog reader
    catalog_cache_ttl_seconds: float = 300.0
    catalog_cache_max_entries: int = 256

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def pricing_policy(self) -> PricingPolicy:
        """Build the shared pricing policy.

        Raises:
            ConfigurationError: If any pricing value is out of range.
        """
        return PricingPolicy.from_values(
            markup_factor=self.markup_factor,
            default_discount=self.default_discount,
            breakpoints=self.bulk_breakpoints,
            discounts=self.bulk_discounts,
            currency=self.currency,
        )

    def catalog_policy(self) -> CatalogPolicy:
        return CatalogPolicy(
            featured_stock_threshold=self.featured_stock_threshold,
            featured_price_threshold=Decimal(str(self.featured_price_threshold)),
            new_product_days=self.new_product_days,
        )

    def sync_policy(self) -> SyncPolicy:
        return SyncPolicy(
            batch_size=self.sync_batch_size,
            max_retries=self.sync_max_retries,
            sync_interval_seconds=self.sync_interval_seconds,
            image_interval_seconds=self.image_interval_seconds,
            image_max_retries=self.image_max_retries,
            image_timeout_seconds=self.image_timeout_seconds,
            reconciliation_pause_seconds=self.reconciliation_pause_seconds,
        )


settings = Settings()
