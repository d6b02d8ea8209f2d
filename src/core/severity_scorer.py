import logging
from typing import Iterable, List, Sequence, Tuple

from contracts.resolved_status import ResolvedStatus, Severity, SeverityTier, StatusTier

logger = logging.getLogger(__name__)

PROTECTED_SCORE = 5
MAX_SCORE = 100

SERVER_ERROR_POINTS = 40
ERROR_STATUS_POINTS = 45
CRITICAL_STATUS_POINTS = 20
ISOLATION_POINTS = 15
PERSISTENCE_POINTS = 15

# (threshold, points), highest first; only the first matching band applies
LATENCY_BANDS_MS = ((10000, 40), (5000, 30), (3000, 20), (2000, 10))
RATIO_BANDS = ((8, 30), (5, 20), (3, 10))

ISOLATION_MIN_INSTITUTIONS = 4
ISOLATION_OK_SHARE = 0.75
PERSISTENCE_SAMPLES = 3
PERSISTENCE_FACTOR = 2.5

SEVERITY_TIERS = (
    (80, SeverityTier.CRITICAL, "Problema Grave"),
    (60, SeverityTier.ALTO, "Problema Confirmado"),
    (40, SeverityTier.MODERADO, "Degradação Detectada"),
    (20, SeverityTier.BAIXO, "Anomalia Leve"),
    (0, SeverityTier.NENHUM, "Operacional"),
)


def severity_tier(score: int) -> Tuple[SeverityTier, str]:
    for threshold, tier, label in SEVERITY_TIERS:
        if score >= threshold:
            return tier, label
    return SeverityTier.NENHUM, "Operacional"


def _band_points(value: float, bands) -> int:
    for threshold, points in bands:
        if value >= threshold:
            return points
    return 0


class SeverityScorer:
    """
    Converts an unscored ResolvedStatus into a bounded 0-100 severity.

    The score is a sum of independent, individually capped contributions,
    clamped to MAX_SCORE. Bot-protected institutions short-circuit to a fixed
    low score since blocking is not an outage signal.
    """

    def score(
        self,
        candidate: ResolvedStatus,
        siblings: Sequence[ResolvedStatus] = (),
        recent_latencies: Iterable[float] = (),
    ) -> Severity:
        """
        Score one result.

        Args:
            candidate (ResolvedStatus): The unscored result.
            siblings (Sequence[ResolvedStatus]): Every result of the current cycle
                (the candidate itself may be included; it is excluded by id).
            recent_latencies (Iterable[float]): The institution's most recent
                baseline samples, oldest first.

        Returns:
            Severity: Score, tier, label and the factors that contributed.
        """
        if candidate.protected:
            return Severity(
                score=PROTECTED_SCORE,
                tier=SeverityTier.NENHUM,
                label="Protegido",
                factors=["HTTP 403/429 - bot protection"],
            )

        score = 0
        factors: List[str] = []

        if candidate.status_code is not None and 500 <= candidate.status_code < 600:
            score += SERVER_ERROR_POINTS
            factors.append(f"HTTP {candidate.status_code}")

        if candidate.latency_ms is not None:
            points = _band_points(candidate.latency_ms, LATENCY_BANDS_MS)
            if points:
                score += points
                factors.append(f"latency {candidate.latency_ms / 1000:.1f}s")

        if candidate.ratio is not None and candidate.baseline_ms > 0:
            points = _band_points(candidate.ratio, RATIO_BANDS)
            if points:
                score += points
                factors.append(f"{candidate.ratio}x slower than baseline")

        if candidate.status == StatusTier.ERROR:
            score += ERROR_STATUS_POINTS
            factors.append("no source reachable")
        elif candidate.status == StatusTier.CRITICAL:
            score += CRITICAL_STATUS_POINTS
            factors.append("critical status")

        if candidate.urls_offline >= 2:
            score += 20
            factors.append(f"{candidate.urls_offline} URLs offline")
        elif candidate.urls_offline == 1:
            score += 10
            factors.append("1 URL offline")

        if self._is_isolated(candidate, siblings):
            score += ISOLATION_POINTS
            factors.append("isolated problem")

        if self._is_persistent(candidate, list(recent_latencies)):
            score += PERSISTENCE_POINTS
            factors.append("persistent degradation")

        if candidate.status == StatusTier.OK and score == 0:
            factors.append("healthy")

        score = min(score, MAX_SCORE)
        tier, label = severity_tier(score)
        logger.debug(f"Severity for {candidate.institution_id}: {score} ({tier.value}) {factors}")
        return Severity(score=score, tier=tier, label=label, factors=factors)

    @staticmethod
    def _is_isolated(candidate: ResolvedStatus, siblings: Sequence[ResolvedStatus]) -> bool:
        if candidate.status == StatusTier.OK or len(siblings) < ISOLATION_MIN_INSTITUTIONS:
            return False
        others = [s for s in siblings if s.institution_id != candidate.institution_id]
        if not others:
            return False
        ok_share = sum(1 for s in others if s.status == StatusTier.OK) / len(others)
        return ok_share >= ISOLATION_OK_SHARE

    @staticmethod
    def _is_persistent(candidate: ResolvedStatus, recent: List[float]) -> bool:
        if len(recent) < PERSISTENCE_SAMPLES or candidate.baseline_ms <= 0:
            return False
        limit = candidate.baseline_ms * PERSISTENCE_FACTOR
        return all(latency > limit for latency in recent[-PERSISTENCE_SAMPLES:])
