"""Tests for settings and policy construction."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from catalogsync.domain.exceptions import ConfigurationError
from catalogsync.infrastructure.config import Settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self) -> None:
        """Defaults use the in-memory backend and no image service."""
        settings = Settings(_env_file=None)

        assert settings.store_backend == "memory"
        assert settings.image_service_url is None
        assert settings.sync_batch_size == 10

    def test_environment_overrides(self, monkeypatch) -> None:
        """Environment variables override defaults."""
        monkeypatch.setenv("MARKUP_FACTOR", "1.35")
        monkeypatch.setenv("SYNC_BATCH_SIZE", "25")
        monkeypatch.setenv("STORE_BACKEND", "sql")

        settings = Settings(_env_file=None)

        assert settings.markup_factor == 1.35
        assert settings.sync_batch_size == 25
        assert settings.store_backend == "sql"

    def test_unknown_backend_rejected(self) -> None:
        """Only the memory and sql backends are accepted."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, store_backend="mongo")


class TestPolicyBuilders:
    """Tests for the policy factory methods."""

    def test_pricing_policy(self) -> None:
        """Float settings become an exact decimal pricing policy."""
        policy = Settings(_env_file=None, markup_factor=1.3, default_discount=0.15).pricing_policy()

        assert policy.markup_factor == Decimal("1.3")
        assert policy.default_discount == Decimal("0.15")
        assert policy.bulk_tiers[0] == (10, Decimal("0.05"))

    def test_invalid_pricing_rejected(self) -> None:
        """Out-of-range pricing fails at policy construction."""
        settings = Settings(_env_file=None, default_discount=1.5)

        with pytest.raises(ConfigurationError):
            settings.pricing_policy()

    def test_mismatched_bulk_lists_rejected(self) -> None:
        """Breakpoints and discounts must pair up."""
        settings = Settings(_env_file=None, bulk_breakpoints=[10, 20], bulk_discounts=[0.05])

        with pytest.raises(ConfigurationError):
            settings.pricing_policy()

    def test_catalog_policy(self) -> None:
        """Merchandising thresholds are carried over."""
        policy = Settings(_env_file=None, featured_price_threshold=750.0).catalog_policy()

        assert policy.featured_price_threshold == Decimal("750.0")
        assert policy.featured_stock_threshold == 20

    def test_sync_policy(self) -> None:
        """Queue settings map onto the sync policy."""
        policy = Settings(
            _env_file=None, sync_max_retries=5, reconciliation_pause_seconds=0.0
        ).sync_policy()

        assert policy.max_retries == 5
        assert policy.reconciliation_pause_seconds == 0.0
        assert policy.image_timeout_seconds == 60.0

    def test_invalid_sync_policy_rejected(self) -> None:
        """A zero batch size is rejected."""
        with pytest.raises(ConfigurationError):
            Settings(_env_file=None, sync_batch_size=0).sync_policy()
