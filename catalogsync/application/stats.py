"""In-memory sync counters.

The sync health view is derived from these counters plus queue lengths
at any time, without pausing the pipeline.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any


@dataclass
class SyncStats:
    """Mutable counters shared by the processors of one orchestrator.

    Attributes:
        total_synced: Sync operations that reached a terminal outcome.
        success_count: Operations that completed successfully.
        error_count: Operations that exhausted their retries.
        retry_count: Individual failed attempts that were re-queued.
        last_sync_time: When the last terminal outcome was recorded.
        images_generated: Successful image generation jobs.
        image_errors: Image jobs dropped after exhausting retries.
        image_generation_time_ms: Cumulative time spent in successful generation calls.
        reconciliation_runs: Completed reconciliation passes.
        last_reconciliation: When the last reconciliation pass finished.
    """

    total_synced: int = 0
    success_count: int = 0
    error_count: int = 0
    retry_count: int = 0
    last_sync_time: datetime | None = None
    images_generated: int = 0
    image_errors: int = 0
    image_generation_time_ms: float = 0.0
    reconciliation_runs: int = 0
    last_reconciliation: datetime | None = None

    def record_success(self, at: datetime) -> None:
        self.total_synced += 1
        self.success_count += 1
        self.last_sync_time = at

    def record_failure(self, at: datetime) -> None:
        self.total_synced += 1
        self.error_count += 1
        self.last_sync_time = at

    @property
    def success_rate(self) -> float:
        """Fraction of terminal outcomes that succeeded (1.0 when idle)."""
        if self.total_synced == 0:
            return 1.0
        return self.success_count / self.total_synced

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["success_rate"] = round(self.success_rate, 4)
        return data
