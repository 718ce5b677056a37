"""Base classes and helpers for the domain layer.

Catalog records are persisted as camelCase documents. Value objects know
how to render themselves to that document form so the change detector
and the stores agree on a single representation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENTS = Decimal("0.01")


# ============================================================================
# Value Object Base
# ============================================================================


@dataclass(frozen=True)
class ValueObject(ABC):
    """Base class for value objects.

    Value objects are immutable and compared by their attributes,
    not by identity. Two catalog sub-records with equal attributes are
    considered unchanged by the change detector.
    """

    @abstractmethod
    def to_document(self) -> dict[str, Any]:
        """Render the value object as a document fragment.

        Returns:
            Dictionary with camelCase keys and JSON-compatible values.
        """
        pass


# ============================================================================
# Time Helpers
# ============================================================================


def utc_now() -> datetime:
    """Get current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a stored timestamp leniently.

    Accepts aware or naive datetimes, ISO-8601 strings (with or without
    a trailing ``Z``) and epoch seconds. Naive values are assumed UTC.

    Args:
        value: Raw timestamp value from a document.

    Returns:
        Aware datetime, or None when the value is missing or unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def format_timestamp(value: datetime | None) -> str | None:
    """Format a datetime for document storage."""
    return value.isoformat() if value is not None else None


# ============================================================================
# Numeric Helpers
# ============================================================================


def to_decimal(value: Any) -> Decimal:
    """Coerce a raw numeric value to Decimal, defaulting to zero.

    Args:
        value: Number or numeric string.

    Returns:
        Decimal value, or zero for missing and malformed input.
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not result.is_finite():
        return Decimal("0")
    return result


def round_money(value: Decimal) -> Decimal:
    """Round a monetary amount half-up to two decimals."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_non_negative_int(value: Any) -> int:
    """Coerce a raw count to a non-negative int, defaulting to zero."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(number, 0)


def money_to_document(value: Decimal) -> float:
    """Render a rounded Decimal amount for JSON storage."""
    return float(round_money(value))
