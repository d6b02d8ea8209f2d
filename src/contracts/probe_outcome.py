from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SourceKind(str, Enum):
    DIRECT = "direct"
    OFFICIAL_STATUS = "official-status"
    AGGREGATOR = "aggregator"


class ProbeOutcome(BaseModel):
    """
    Normalized result of a single probe attempt against one target.
    """

    model_config = ConfigDict(frozen=True)

    source: SourceKind
    reachable: bool
    target: Optional[str] = None
    latency_ms: Optional[float] = None
    status_code: Optional[int] = None
    report_count: Optional[int] = None
    confidence: int = Field(ge=0, le=100)
    # Reachable but showing degradation (status-page incident, elevated outage reports)
    degraded: bool = False
    indicator: Optional[str] = None
    stale: bool = False
