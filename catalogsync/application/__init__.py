"""Application layer module.

Contains the sync orchestrator and the queues, processors and timers it
coordinates.
"""

from catalogsync.application.orchestrator import (
    OrchestratorState,
    ProductSyncOrchestrator,
    SyncHealth,
)
from catalogsync.application.reconciliation import Reconciler, ReconciliationReport
from catalogsync.application.scheduler import ManualClock, PeriodicTask, SystemClock

__all__ = [
    "ManualClock",
    "OrchestratorState",
    "PeriodicTask",
    "ProductSyncOrchestrator",
    "Reconciler",
    "ReconciliationReport",
    "SyncHealth",
    "SystemClock",
]
