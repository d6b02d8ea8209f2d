from typing import Optional

from contracts.resolved_status import Priority, PriorityTier, StatusTier

ACTIONS = {
    PriorityTier.P1_CRITICAL: "alert immediately",
    PriorityTier.P2_URGENT: "investigate within 5 minutes",
    PriorityTier.P3_ATTENTION: "monitor",
    PriorityTier.P4_INFO: "none",
}


def _priority(tier: PriorityTier) -> Priority:
    return Priority(tier=tier, action=ACTIONS[tier])


def classify_priority(status: StatusTier, severity: Optional[int]) -> Priority:
    """Map a status tier and severity score to an actionable urgency tier."""
    if severity is None:
        return _priority(PriorityTier.P4_INFO)
    if status == StatusTier.CRITICAL and severity >= 70:
        return _priority(PriorityTier.P1_CRITICAL)
    if status == StatusTier.ERROR and severity >= 60:
        return _priority(PriorityTier.P1_CRITICAL)
    if status in (StatusTier.SLOW, StatusTier.CRITICAL) and severity >= 50:
        return _priority(PriorityTier.P2_URGENT)
    if status == StatusTier.SLOW and severity >= 30:
        return _priority(PriorityTier.P3_ATTENTION)
    return _priority(PriorityTier.P4_INFO)
