import logging

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from contracts.resolved_status import StatusTier
from contracts.snapshot import Snapshot

logger = logging.getLogger(__name__)


class MetricsManager:
    """
    Manager for Prometheus metrics describing monitoring cycles and per-institution health.
    """

    CONTENT_TYPE = CONTENT_TYPE_LATEST

    def __init__(self, registry: CollectorRegistry = None):
        """
        Initialize the MetricsManager and set up Prometheus metrics.

        Args:
            registry: Collector registry to register metrics in. A private
                registry is created if None, so several managers can coexist.
        """
        self.registry = registry or CollectorRegistry()
        self.CYCLE_DURATION = Histogram(
            "monitor_cycle_duration_seconds",
            "Wall-clock duration of a monitoring cycle",
            buckets=(1, 2, 5, 10, 20, 30, 60, 120),
            registry=self.registry,
        )
        self.CYCLES_SKIPPED = Counter(
            "monitor_cycles_skipped",
            "Scheduled ticks skipped because the previous cycle was still running",
            registry=self.registry,
        )
        self.SEVERITY = Gauge(
            "institution_severity_score",
            "Severity score (0-100) of the last cycle",
            ["institution"],
            registry=self.registry,
        )
        self.LATENCY = Gauge(
            "institution_latency_ms",
            "Latency of the resolving probe, NaN when unknown",
            ["institution"],
            registry=self.registry,
        )
        self.BASELINE = Gauge(
            "institution_baseline_ms",
            "Adaptive baseline latency",
            ["institution"],
            registry=self.registry,
        )
        self.BY_STATUS = Gauge(
            "institutions_by_status",
            "Number of institutions per status tier in the last cycle",
            ["status"],
            registry=self.registry,
        )
        self.SUBSCRIBERS = Gauge(
            "live_subscribers",
            "Connected live-update subscribers",
            registry=self.registry,
        )
        logger.info("MetricsManager initialized.")

    def observe_snapshot(self, snapshot: Snapshot):
        self.CYCLE_DURATION.observe(snapshot.cycle_duration_seconds)
        for result in snapshot.institutions:
            label = result.institution_id
            if result.severity is not None:
                self.SEVERITY.labels(institution=label).set(result.severity.score)
            self.LATENCY.labels(institution=label).set(
                result.latency_ms if result.latency_ms is not None else float("nan")
            )
            self.BASELINE.labels(institution=label).set(result.baseline_ms)
        for tier in StatusTier:
            count = sum(1 for r in snapshot.institutions if r.status == tier)
            self.BY_STATUS.labels(status=tier.value).set(count)

    def record_skipped_ticks(self, count: int):
        if count > 0:
            self.CYCLES_SKIPPED.inc(count)

    def set_subscribers(self, count: int):
        self.SUBSCRIBERS.set(count)

    def export(self) -> bytes:
        return generate_latest(self.registry)
