"""Domain exceptions.

All errors raised by the sync pipeline derive from SyncError so callers
can catch pipeline failures at the application layer without depending
on store or transport specific exception types.
"""

from typing import Any


class SyncError(Exception):
    """Base class for all catalog sync exceptions."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize sync error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(SyncError):
    """Raised when a pricing or catalog policy value is out of range."""

    def __init__(self, field_name: str, value: Any, reason: str) -> None:
        """Initialize configuration error.

        Args:
            field_name: Name of the offending setting.
            value: The rejected value.
            reason: Why the value was rejected.
        """
        super().__init__(
            f"Invalid configuration for '{field_name}': {reason}",
            details={"field": field_name, "value": value, "reason": reason},
        )


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidStateTransitionError(SyncError):
    """Raised when an invalid state transition is attempted."""

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "SyncOperation").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


class OrchestratorStateError(SyncError):
    """Raised when the orchestrator is started twice or used after stop."""

    def __init__(self, operation: str, state: str) -> None:
        super().__init__(
            f"Cannot {operation} while orchestrator is {state}",
            details={"operation": operation, "state": state},
        )


# ============================================================================
# Transformation Errors
# ============================================================================


class TransformationError(SyncError):
    """Raised when an internal product cannot be mapped to a catalog entry."""

    def __init__(self, product_id: str, reason: str) -> None:
        """Initialize transformation error.

        Args:
            product_id: Internal product ID.
            reason: Description of the failure.
        """
        super().__init__(
            f"Failed to transform product {product_id}: {reason}",
            details={"product_id": product_id, "reason": reason},
        )


# ============================================================================
# Store Errors
# ============================================================================


class StoreError(SyncError):
    """Base class for document store failures."""

    def __init__(
        self,
        operation: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize store error.

        Args:
            operation: Store operation that failed (e.g., "insert").
            reason: Description of the failure.
            details: Optional additional context.
        """
        super().__init__(
            f"Store operation '{operation}' failed: {reason}",
            details={"operation": operation, "reason": reason, **(details or {})},
        )
        self.operation = operation


class TransientStoreError(StoreError):
    """Store failure that may succeed on retry (timeouts, connection loss)."""

    pass


class PermanentStoreError(StoreError):
    """Store failure that will not succeed on retry (rejected document)."""

    pass


class ProductNotFoundError(SyncError):
    """Raised when an internal product does not exist."""

    def __init__(self, product_id: str) -> None:
        super().__init__(
            f"Internal product {product_id} not found",
            details={"product_id": product_id},
        )


class CatalogEntryNotFoundError(SyncError):
    """Raised when a public catalog entry does not exist."""

    def __init__(self, entry_id: str) -> None:
        super().__init__(
            f"Catalog entry {entry_id} not found",
            details={"entry_id": entry_id},
        )


# ============================================================================
# Image Errors
# ============================================================================


class ImageGenerationError(SyncError):
    """Raised when the image generation service fails or times out."""

    def __init__(self, product_id: str, reason: str) -> None:
        """Initialize image generation error.

        Args:
            product_id: Internal product ID the images were requested for.
            reason: Description of the failure.
        """
        super().__init__(
            f"Image generation failed for product {product_id}: {reason}",
            details={"product_id": product_id, "reason": reason},
        )
