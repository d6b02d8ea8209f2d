from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from contracts.resolved_status import PriorityTier, ResolvedStatus, StatusTier


class SnapshotSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: int = 0
    slow: int = 0
    critical: int = 0
    error: int = 0
    total: int = 0
    p1: int = 0
    p2: int = 0

    @classmethod
    def from_results(cls, results: List[ResolvedStatus]) -> "SnapshotSummary":
        def count_status(tier):
            return sum(1 for r in results if r.status == tier)

        def count_priority(tier):
            return sum(1 for r in results if r.priority and r.priority.tier == tier)

        return cls(
            ok=count_status(StatusTier.OK),
            slow=count_status(StatusTier.SLOW),
            critical=count_status(StatusTier.CRITICAL),
            error=count_status(StatusTier.ERROR),
            total=len(results),
            p1=count_priority(PriorityTier.P1_CRITICAL),
            p2=count_priority(PriorityTier.P2_URGENT),
        )


class Snapshot(BaseModel):
    """
    Complete, immutable result of one monitoring cycle.
    """

    model_config = ConfigDict(frozen=True)

    cycle: int
    institutions: List[ResolvedStatus]
    cycle_duration_seconds: float
    summary: SnapshotSummary
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def placeholder_snapshot() -> dict:
    """Document served by the query endpoint before the first cycle completes."""
    return {
        "cycle": 0,
        "institutions": [],
        "cycle_duration_seconds": None,
        "summary": SnapshotSummary().model_dump(),
        "timestamp": None,
    }
