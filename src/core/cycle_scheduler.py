import asyncio
import contextlib
import logging
import time
from typing import Iterable, List, Optional

from abstractions.cycle_sink import CycleSink
from config.config import Config
from contracts.institution import Institution
from contracts.resolved_status import PriorityTier, ResolvedStatus
from contracts.snapshot import Snapshot, SnapshotSummary
from core.baseline_tracker import BaselineTracker
from core.live_fanout import LiveFanout
from core.metrics_manager import MetricsManager
from core.priority_classifier import classify_priority
from core.profiler import Profiler
from core.severity_scorer import PERSISTENCE_SAMPLES, SeverityScorer
from core.snapshot_store import SnapshotStore
from core.source_resolver import SourceResolver

logger = logging.getLogger(__name__)

# Slack on top of the resolver's own budget before a resolution is abandoned
DEADLINE_GRACE_SECONDS = 2.0


class CycleScheduler:
    """
    Runs one monitoring pass over every institution at a fixed interval.

    At most one cycle is ever in flight: ticks that fall while a cycle is still
    running are skipped, never queued. Every pass ends by replacing the shared
    snapshot with a new immutable one.
    """

    def __init__(
        self,
        institutions: Iterable[Institution],
        resolver: SourceResolver,
        baseline_tracker: BaselineTracker,
        snapshot_store: SnapshotStore,
        scorer: SeverityScorer = None,
        fanout: Optional[LiveFanout] = None,
        sink: Optional[CycleSink] = None,
        metrics: Optional[MetricsManager] = None,
        interval: float = None,
        max_concurrent: int = None,
        institution_deadline: float = None,
    ):
        self.institutions: List[Institution] = list(institutions)
        self.resolver = resolver
        self.baseline_tracker = baseline_tracker
        self.snapshot_store = snapshot_store
        self.scorer = scorer or SeverityScorer()
        self.fanout = fanout
        self.sink = sink
        self.metrics = metrics
        self.interval = interval or Config.INTERVAL_SECONDS
        self.max_concurrent = max_concurrent or Config.MAX_CONCURRENT_INSTITUTIONS
        self.institution_deadline = (
            institution_deadline or Config.INSTITUTION_DEADLINE_SECONDS
        )
        self._weights = {i.id: i.priority_weight for i in self.institutions}
        self._cycle_in_progress = False
        self._cycle_count = 0
        self.skipped_ticks = 0
        self._task = None
        self._running = False
        for institution in self.institutions:
            self.baseline_tracker.register(institution)
        logger.info(
            f"CycleScheduler initialized: {len(self.institutions)} institutions, "
            f"interval={self.interval}s, max_concurrent={self.max_concurrent}"
        )

    @property
    def cycle_in_progress(self) -> bool:
        return self._cycle_in_progress

    async def start(self):
        """
        Start the scheduling loop; the first cycle runs immediately.
        """
        self._running = True
        self._task = asyncio.create_task(self._schedule_loop())
        logger.info("Monitoring loop started.")

    async def stop(self):
        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        logger.info("Monitoring loop stopped.")

    async def _schedule_loop(self):
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while self._running:
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Monitoring cycle failed; next tick proceeds")
            next_tick += self.interval
            now = loop.time()
            if now > next_tick:
                missed = int((now - next_tick) // self.interval) + 1
                next_tick += missed * self.interval
                self.skipped_ticks += missed
                if self.metrics:
                    self.metrics.record_skipped_ticks(missed)
                logger.warning(f"Cycle overran the interval, skipped {missed} tick(s)")
            await asyncio.sleep(max(0.0, next_tick - loop.time()))

    async def run_cycle(self) -> Optional[Snapshot]:
        """
        Run one full pass unless one is already running.

        Returns:
            Optional[Snapshot]: The committed snapshot, or None if skipped.
        """
        if self._cycle_in_progress:
            logger.warning("Cycle already in progress, skipping")
            return None
        self._cycle_in_progress = True
        try:
            return await self._run_cycle()
        finally:
            self._cycle_in_progress = False

    @Profiler.profile
    async def _run_cycle(self) -> Snapshot:
        started = time.perf_counter()
        cycle = self._cycle_count + 1
        logger.info(f"Cycle {cycle}: checking {len(self.institutions)} institutions")

        semaphore = asyncio.Semaphore(self.max_concurrent)
        candidates = await asyncio.gather(
            *(self._resolve_one(institution, semaphore) for institution in self.institutions)
        )
        results = [self._score(candidate, candidates) for candidate in candidates]

        snapshot = Snapshot(
            cycle=cycle,
            institutions=results,
            cycle_duration_seconds=round(time.perf_counter() - started, 2),
            summary=SnapshotSummary.from_results(results),
        )
        self._cycle_count = cycle
        self.snapshot_store.replace(snapshot)
        self._log_summary(snapshot)

        if self.metrics:
            self.metrics.observe_snapshot(snapshot)
        if self.fanout:
            await self.fanout.publish(snapshot)
            if self.metrics:
                self.metrics.set_subscribers(await self.fanout.subscriber_count())
        if self.sink:
            try:
                self.sink.write(snapshot)
            except Exception as e:
                logger.warning(f"Cycle log sink failed: {e!r}")
        return snapshot

    async def _resolve_one(
        self, institution: Institution, semaphore: asyncio.Semaphore
    ) -> ResolvedStatus:
        async with semaphore:
            try:
                resolution = await asyncio.wait_for(
                    self.resolver.resolve(institution),
                    timeout=self.institution_deadline + DEADLINE_GRACE_SECONDS,
                )
            except asyncio.TimeoutError:
                return self.resolver.error_candidate(
                    institution,
                    self.baseline_tracker.baseline(institution.id),
                    f"exceeded {self.institution_deadline}s deadline",
                )
            except Exception as e:
                logger.exception(f"[{institution.name}] Unexpected resolution failure")
                return self.resolver.error_candidate(
                    institution, self.baseline_tracker.baseline(institution.id), repr(e)
                )

        if resolution.feeds_baseline:
            self.baseline_tracker.record(institution.id, resolution.outcome.latency_ms)
        return self.resolver.to_candidate(
            institution, resolution, self.baseline_tracker.baseline(institution.id)
        )

    def _score(
        self, candidate: ResolvedStatus, siblings: List[ResolvedStatus]
    ) -> ResolvedStatus:
        severity = self.scorer.score(
            candidate,
            siblings,
            self.baseline_tracker.recent(candidate.institution_id, PERSISTENCE_SAMPLES),
        )
        priority = classify_priority(candidate.status, severity.score)
        return candidate.model_copy(update={"severity": severity, "priority": priority})

    def _log_summary(self, snapshot: Snapshot):
        for tier in (PriorityTier.P1_CRITICAL, PriorityTier.P2_URGENT):
            alerts = sorted(
                (r for r in snapshot.institutions if r.priority.tier == tier),
                key=lambda r: (-r.severity.score, -self._weights.get(r.institution_id, 0)),
            )
            for r in alerts:
                logger.warning(
                    f"[{tier.value}] {r.name}: severity {r.severity.score} | "
                    f"{', '.join(r.severity.factors)} -> {r.priority.action}"
                )
        s = snapshot.summary
        logger.info(
            f"Cycle {snapshot.cycle} done in {snapshot.cycle_duration_seconds}s | "
            f"OK: {s.ok} | SLOW: {s.slow} | CRITICAL: {s.critical} | ERROR: {s.error}"
        )
