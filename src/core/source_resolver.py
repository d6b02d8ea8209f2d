import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from abstractions.probe import Probe
from config.config import Config
from contracts.errors import ProbeBlocked, ProbeError
from contracts.institution import Institution
from contracts.probe_outcome import ProbeOutcome, SourceKind
from contracts.resolved_status import ResolvedStatus, StatusTier
from core.profiler import Profiler

logger = logging.getLogger(__name__)

PROTECTED_CONFIDENCE = 10
EXHAUSTED_CONFIDENCE = 50


@dataclass(frozen=True)
class Resolution:
    """
    What the fallback chain concluded for one institution, before baseline context.
    """

    status: StatusTier
    confidence: int
    outcome: Optional[ProbeOutcome] = None
    urls_total: int = 0
    urls_offline: int = 0
    protected: bool = False
    failures: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def feeds_baseline(self) -> bool:
        """Only a fully successful, unprotected direct probe updates the baseline."""
        return (
            self.outcome is not None
            and self.outcome.source is SourceKind.DIRECT
            and self.outcome.reachable
            and not self.protected
            and self.outcome.latency_ms is not None
        )


class SourceResolver:
    """
    Tries an institution's data sources in priority order until one yields a usable
    signal: direct URLs, then the official status page, then the outage aggregator.
    """

    def __init__(
        self,
        direct_probe: Probe,
        status_probe: Optional[Probe] = None,
        aggregator_probe: Optional[Probe] = None,
        slow_latency_ms: float = None,
        critical_latency_ms: float = None,
        institution_deadline: float = None,
        clock=time.monotonic,
    ):
        self.direct_probe = direct_probe
        self.status_probe = status_probe
        self.aggregator_probe = aggregator_probe
        self.slow_latency_ms = slow_latency_ms or Config.SLOW_LATENCY_MS
        self.critical_latency_ms = critical_latency_ms or Config.CRITICAL_LATENCY_MS
        self.institution_deadline = (
            institution_deadline or Config.INSTITUTION_DEADLINE_SECONDS
        )
        self._clock = clock

    def plan(self, institution: Institution) -> List[Tuple[Probe, str]]:
        """Return the ordered (probe, target) attempts for an institution."""
        attempts = [(self.direct_probe, url) for url in institution.urls]
        if institution.status_api and self.status_probe:
            attempts.append((self.status_probe, institution.status_api))
        if institution.aggregator_id and self.aggregator_probe:
            attempts.append(
                (
                    self.aggregator_probe,
                    self.aggregator_probe.target_for(institution.aggregator_id),
                )
            )
        return attempts

    def status_for_latency(self, latency_ms: float) -> StatusTier:
        if latency_ms >= self.critical_latency_ms:
            return StatusTier.CRITICAL
        if latency_ms >= self.slow_latency_ms:
            return StatusTier.SLOW
        return StatusTier.OK

    @Profiler.profile
    async def resolve(self, institution: Institution) -> Resolution:
        started = self._clock()
        urls_total = len(institution.urls)
        blocked: List[ProbeBlocked] = []
        server_errors: List[ProbeOutcome] = []
        failures: List[str] = []
        urls_offline = 0

        for probe, target in self.plan(institution):
            if probe.kind is not SourceKind.DIRECT and self._all_blocked(urls_total, blocked):
                break
            remaining = self.institution_deadline - (self._clock() - started)
            if remaining <= 0:
                logger.warning(
                    f"[{institution.name}] Deadline of {self.institution_deadline}s "
                    f"exhausted before trying {target}"
                )
                failures.append("deadline-exhausted")
                break
            try:
                outcome = await probe.attempt(target, min(probe.timeout, remaining))
            except ProbeBlocked as e:
                logger.info(f"[{institution.name}] HTTP {e.status_code} at {target}, trying next source")
                if probe.kind is SourceKind.DIRECT:
                    blocked.append(e)
                else:
                    failures.append(e.kind)
                continue
            except ProbeError as e:
                logger.info(f"[{institution.name}] {e}")
                failures.append(e.kind)
                if probe.kind is SourceKind.DIRECT:
                    urls_offline += 1
                continue

            if outcome.source is SourceKind.DIRECT:
                if outcome.reachable:
                    return Resolution(
                        status=self.status_for_latency(outcome.latency_ms),
                        confidence=outcome.confidence,
                        outcome=outcome,
                        urls_total=urls_total,
                        urls_offline=urls_offline,
                        failures=tuple(failures),
                    )
                urls_offline += 1
                failures.append(f"http-{outcome.status_code}")
                if outcome.status_code is not None and outcome.status_code >= 500:
                    server_errors.append(outcome)
                continue

            logger.info(f"[{institution.name}] Resolved via {outcome.source.value}")
            return Resolution(
                status=self._status_for_fallback(outcome),
                confidence=outcome.confidence,
                outcome=outcome,
                urls_total=urls_total,
                urls_offline=urls_offline,
                failures=tuple(failures),
            )

        if self._all_blocked(urls_total, blocked):
            fastest = min(
                blocked,
                key=lambda b: b.latency_ms if b.latency_ms is not None else float("inf"),
            )
            logger.info(f"[{institution.name}] All URLs blocked (HTTP 403/429), marking protected")
            return Resolution(
                status=StatusTier.OK,
                confidence=PROTECTED_CONFIDENCE,
                outcome=ProbeOutcome(
                    source=SourceKind.DIRECT,
                    reachable=True,
                    target=fastest.target,
                    latency_ms=fastest.latency_ms,
                    status_code=fastest.status_code,
                    confidence=PROTECTED_CONFIDENCE,
                ),
                urls_total=urls_total,
                protected=True,
                failures=tuple(failures),
            )

        if server_errors:
            # The server answered, but with an error: up and failing rather than unreachable
            outcome = server_errors[0]
            logger.warning(
                f"[{institution.name}] No source healthy, HTTP {outcome.status_code} from {outcome.target}"
            )
            return Resolution(
                status=StatusTier.CRITICAL,
                confidence=outcome.confidence,
                outcome=outcome,
                urls_total=urls_total,
                urls_offline=urls_offline,
                failures=tuple(failures),
            )

        logger.warning(f"[{institution.name}] All sources exhausted: {', '.join(failures) or 'no sources'}")
        failures.append("all-sources-exhausted")
        return Resolution(
            status=StatusTier.ERROR,
            confidence=EXHAUSTED_CONFIDENCE,
            urls_total=urls_total,
            urls_offline=urls_offline,
            failures=tuple(failures),
        )

    @staticmethod
    def _all_blocked(urls_total: int, blocked: List[ProbeBlocked]) -> bool:
        return urls_total > 0 and len(blocked) == urls_total

    @staticmethod
    def _status_for_fallback(outcome: ProbeOutcome) -> StatusTier:
        if outcome.source is SourceKind.OFFICIAL_STATUS:
            if outcome.reachable:
                return StatusTier.OK
            return StatusTier.SLOW if outcome.indicator == "minor" else StatusTier.CRITICAL
        if not outcome.reachable:
            return StatusTier.CRITICAL
        return StatusTier.SLOW if outcome.degraded else StatusTier.OK

    def to_candidate(
        self, institution: Institution, resolution: Resolution, baseline_ms: float
    ) -> ResolvedStatus:
        """
        Merge a resolution with the institution's baseline into an unscored ResolvedStatus.
        """
        outcome = resolution.outcome
        latency_ms = outcome.latency_ms if outcome else None
        ratio = None
        if latency_ms is not None and baseline_ms > 0:
            ratio = round(latency_ms / baseline_ms, 2)
        return ResolvedStatus(
            institution_id=institution.id,
            name=institution.name,
            status=resolution.status,
            source=outcome.source if outcome else None,
            latency_ms=latency_ms,
            baseline_ms=round(baseline_ms, 1),
            ratio=ratio,
            status_code=outcome.status_code if outcome else None,
            confidence=resolution.confidence,
            urls_offline=resolution.urls_offline,
            urls_total=resolution.urls_total,
            protected=resolution.protected,
            report_count=outcome.report_count if outcome else None,
            target=outcome.target if outcome else None,
            failures=list(resolution.failures),
        )

    @staticmethod
    def error_candidate(
        institution: Institution, baseline_ms: float, reason: str
    ) -> ResolvedStatus:
        """Unscored ERROR result for an institution whose resolution itself failed."""
        logger.error(f"[{institution.name}] Resolution failed: {reason}")
        return ResolvedStatus(
            institution_id=institution.id,
            name=institution.name,
            status=StatusTier.ERROR,
            baseline_ms=round(baseline_ms, 1),
            confidence=EXHAUSTED_CONFIDENCE,
            urls_total=len(institution.urls),
            failures=["resolution-failed"],
        )
