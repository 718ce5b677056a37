"""Policy objects consumed by the sync core.

Policies are immutable and validated on construction. A single
PricingPolicy instance is shared by every code path that prices an
entry (reconciliation, listener-driven creates and updates).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from catalogsync.domain.exceptions import ConfigurationError

PLACEHOLDER_PATTERNS: tuple[str, ...] = (
    "placeholder",
    "via.placeholder",
    "default-image",
    "no-image",
    "temp-image",
)


@dataclass(frozen=True)
class PricingPolicy:
    """Markup, discount and bulk-tier configuration.

    Attributes:
        markup_factor: Multiplier applied to the base price (1.20 = +20%).
        default_discount: Fraction taken off the list price (0.10 = 10%).
        bulk_tiers: Pairs of (min quantity, fraction off the discount price).
        currency: ISO currency code for catalog prices.
    """

    markup_factor: Decimal = Decimal("1.20")
    default_discount: Decimal = Decimal("0.10")
    bulk_tiers: tuple[tuple[int, Decimal], ...] = (
        (10, Decimal("0.05")),
        (25, Decimal("0.10")),
        (50, Decimal("0.15")),
        (100, Decimal("0.20")),
    )
    currency: str = "MYR"

    def __post_init__(self) -> None:
        """Validate pricing constraints."""
        if self.markup_factor <= 0:
            raise ConfigurationError("markup_factor", self.markup_factor, "must be positive")
        if not Decimal("0") <= self.default_discount <= Decimal("1"):
            raise ConfigurationError(
                "default_discount", self.default_discount, "must be within [0, 1]"
            )
        previous = 0
        for min_qty, pct in self.bulk_tiers:
            if min_qty <= previous:
                raise ConfigurationError(
                    "bulk_breakpoints", min_qty, "must be positive and strictly increasing"
                )
            if not Decimal("0") <= pct <= Decimal("1"):
                raise ConfigurationError("bulk_discounts", pct, "must be within [0, 1]")
            previous = min_qty
        if len(self.currency) != 3:
            raise ConfigurationError("currency", self.currency, "must be an ISO 4217 code")
        object.__setattr__(self, "currency", self.currency.upper())

    @classmethod
    def from_values(
        cls,
        markup_factor: float,
        default_discount: float,
        breakpoints: list[int],
        discounts: list[float],
        currency: str = "MYR",
    ) -> Self:
        """Create a policy from plain configuration values.

        Args:
            markup_factor: Markup multiplier.
            default_discount: Discount fraction.
            breakpoints: Bulk tier minimum quantities.
            discounts: Bulk tier discount fractions, one per breakpoint.
            currency: Currency code.

        Returns:
            Validated PricingPolicy.

        Raises:
            ConfigurationError: If any value is out of range.
        """
        if len(breakpoints) != len(discounts):
            raise ConfigurationError(
                "bulk_discounts", discounts, "must have one entry per breakpoint"
            )
        return cls(
            markup_factor=Decimal(str(markup_factor)),
            default_discount=Decimal(str(default_discount)),
            bulk_tiers=tuple(
                (int(qty), Decimal(str(pct))) for qty, pct in zip(breakpoints, discounts)
            ),
            currency=currency,
        )


@dataclass(frozen=True)
class CatalogPolicy:
    """Merchandising thresholds applied by the transformer."""

    featured_stock_threshold: int = 20
    featured_price_threshold: Decimal = Decimal("500")
    new_product_days: int = 30

    def __post_init__(self) -> None:
        if self.featured_stock_threshold < 0:
            raise ConfigurationError(
                "featured_stock_threshold", self.featured_stock_threshold, "must be >= 0"
            )
        if self.featured_price_threshold < 0:
            raise ConfigurationError(
                "featured_price_threshold", self.featured_price_threshold, "must be >= 0"
            )
        if self.new_product_days < 0:
            raise ConfigurationError("new_product_days", self.new_product_days, "must be >= 0")


@dataclass(frozen=True)
class SyncPolicy:
    """Queue sizing, retry limits and timer intervals."""

    batch_size: int = 10
    max_retries: int = 3
    sync_interval_seconds: float = 3.0
    image_interval_seconds: float = 10.0
    image_max_retries: int = 2
    image_timeout_seconds: float = 60.0
    reconciliation_pause_seconds: float = 0.5
    placeholder_patterns: tuple[str, ...] = PLACEHOLDER_PATTERNS

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ConfigurationError("sync_batch_size", self.batch_size, "must be >= 1")
        if self.max_retries < 1:
            raise ConfigurationError("sync_max_retries", self.max_retries, "must be >= 1")
        if self.image_max_retries < 0:
            raise ConfigurationError(
                "image_max_retries", self.image_max_retries, "must be >= 0"
            )
        for name in ("sync_interval_seconds", "image_interval_seconds", "image_timeout_seconds"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(name, getattr(self, name), "must be positive")
        if self.reconciliation_pause_seconds < 0:
            raise ConfigurationError(
                "reconciliation_pause_seconds",
                self.reconciliation_pause_seconds,
                "must be >= 0",
            )
