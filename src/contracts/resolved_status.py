from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from contracts.probe_outcome import SourceKind


class StatusTier(str, Enum):
    OK = "OK"
    SLOW = "SLOW"
    CRITICAL = "CRITICAL"
    ERROR = "ERROR"


class SeverityTier(str, Enum):
    CRITICAL = "CRITICAL"
    ALTO = "ALTO"
    MODERADO = "MODERADO"
    BAIXO = "BAIXO"
    NENHUM = "NENHUM"


class PriorityTier(str, Enum):
    P1_CRITICAL = "P1_CRITICAL"
    P2_URGENT = "P2_URGENT"
    P3_ATTENTION = "P3_ATTENTION"
    P4_INFO = "P4_INFO"


class Severity(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    tier: SeverityTier
    label: str
    factors: List[str] = Field(default_factory=list)


class Priority(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier: PriorityTier
    action: str


class ResolvedStatus(BaseModel):
    """
    Health verdict for one institution in one monitoring cycle.

    Produced first as an unscored candidate by the source resolver; the cycle
    scheduler replaces it with a scored copy carrying severity and priority.
    """

    model_config = ConfigDict(frozen=True)

    institution_id: str
    name: str
    status: StatusTier
    source: Optional[SourceKind] = None
    latency_ms: Optional[float] = None
    baseline_ms: float
    ratio: Optional[float] = None
    status_code: Optional[int] = None
    confidence: int = Field(ge=0, le=100)
    urls_offline: int = 0
    urls_total: int = 0
    # All direct URLs answered 403/429: bot protection, not an outage
    protected: bool = False
    report_count: Optional[int] = None
    target: Optional[str] = None
    # Failure kinds of the sources tried before the verdict, in order
    failures: List[str] = Field(default_factory=list)
    severity: Optional[Severity] = None
    priority: Optional[Priority] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
