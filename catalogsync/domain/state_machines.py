"""State machines for sync work items.

The sync queue moves every operation through a small deterministic
lifecycle. Transitions outside the table below are programming errors
and raise InvalidStateTransitionError.
"""

from enum import Enum

from catalogsync.domain.exceptions import InvalidStateTransitionError


# ============================================================================
# Sync Operation State Machine
# ============================================================================


class SyncItemStatus(str, Enum):
    """Sync operation lifecycle states.

    State diagram:
        QUEUED ◄──────────────┐
          │                   │ retry (attempts < max)
          │ take              │
          ▼                   │
        PROCESSING ───────────┤
          │                   │
          │ commit            │ exhausted
          ▼                   ▼
        COMPLETED           FAILED
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, target: "SyncItemStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _SYNC_ITEM_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["SyncItemStatus"]:
        """Get list of valid target states.

        Returns:
            List of states that can be transitioned to.
        """
        return list(_SYNC_ITEM_TRANSITIONS.get(self, set()))

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state."""
        return len(_SYNC_ITEM_TRANSITIONS.get(self, set())) == 0


_SYNC_ITEM_TRANSITIONS: dict[SyncItemStatus, set[SyncItemStatus]] = {
    SyncItemStatus.QUEUED: {SyncItemStatus.PROCESSING},
    SyncItemStatus.PROCESSING: {
        SyncItemStatus.COMPLETED,
        SyncItemStatus.QUEUED,
        SyncItemStatus.FAILED,
    },
    SyncItemStatus.COMPLETED: set(),
    SyncItemStatus.FAILED: set(),
}


# ============================================================================
# Sync Log Enums
# ============================================================================


class SyncType(str, Enum):
    """Kind of write a sync operation performs on the public catalog."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class SyncLogStatus(str, Enum):
    """Outcome recorded in the sync log."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


# ============================================================================
# Validation Helpers
# ============================================================================


def validate_sync_transition(
    operation_id: str,
    current_status: SyncItemStatus,
    target_status: SyncItemStatus,
) -> None:
    """Validate and raise if sync operation state transition is invalid.

    Args:
        operation_id: Operation identifier for error message.
        current_status: Current operation status.
        target_status: Target operation status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="SyncOperation",
            entity_id=operation_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )
