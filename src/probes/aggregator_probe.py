import logging
import re
from datetime import datetime, timedelta, timezone

import httpx

from abstractions.probe import Probe
from config.config import Config
from contracts.errors import ProbeNetworkError, ProbeParseError
from contracts.probe_outcome import ProbeOutcome, SourceKind
from core.profiler import Profiler
from probes.http import raise_for_blocked, timed_get

logger = logging.getLogger(__name__)

REPORT_COUNT_PATTERNS = (
    re.compile(r"(\d+)\s+usuários?\s+relat"),
    re.compile(r"(\d+)\s+(?:user\s+)?reports?\b"),
)


class AggregatorProbe(Probe):
    """
    Reads the crowd-sourced outage report count for an institution.

    Accepts either a JSON API document (a ``reports`` time series or a
    top-level ``count``) or the aggregator's public HTML page.
    """

    kind = SourceKind.AGGREGATOR

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: float = None,
        low_threshold: int = None,
        high_threshold: int = None,
        max_report_age: timedelta = None,
        clock=None,
    ):
        self.client = client
        self.timeout = timeout or Config.AGGREGATOR_TIMEOUT_SECONDS
        self.low_threshold = low_threshold or Config.AGGREGATOR_LOW_THRESHOLD
        self.high_threshold = high_threshold or Config.AGGREGATOR_HIGH_THRESHOLD
        self.max_report_age = max_report_age or timedelta(
            minutes=Config.AGGREGATOR_MAX_REPORT_AGE_MINUTES
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def target_for(self, aggregator_id: str) -> str:
        return Config.AGGREGATOR_URL_TEMPLATE.format(id=aggregator_id)

    @Profiler.profile
    async def attempt(self, target: str, deadline: float) -> ProbeOutcome:
        resp, latency_ms = await timed_get(self.client, target, deadline)
        raise_for_blocked(target, resp, latency_ms)
        if not 200 <= resp.status_code < 300:
            raise ProbeNetworkError(target, f"HTTP {resp.status_code}")

        content_type = resp.headers.get("content-type", "")
        if "json" in content_type:
            count, stale = self._parse_json(target, resp)
        else:
            count, stale = self._parse_html(target, resp.text), False

        reachable = count <= self.high_threshold
        degraded = count > self.low_threshold
        if count > self.high_threshold:
            confidence = 85
        elif count > self.low_threshold:
            confidence = 78
        else:
            confidence = 70
        if stale:
            confidence = 70
            logger.warning(f"Aggregator data for {target} is older than {self.max_report_age}")

        logger.info(f"Aggregator for {target}: {count} reports (confidence={confidence})")
        return ProbeOutcome(
            source=self.kind,
            reachable=reachable,
            degraded=degraded,
            target=target,
            report_count=count,
            confidence=confidence,
            stale=stale,
        )

    def _parse_json(self, target: str, resp):
        try:
            data = resp.json()
        except ValueError as e:
            raise ProbeParseError(target, "body is not JSON") from e
        if not isinstance(data, dict):
            raise ProbeParseError(target, "expected a JSON object")

        reports = data.get("reports")
        if isinstance(reports, list):
            if not reports:
                return 0, False
            latest = reports[-1]
            try:
                count = int(latest["value"])
            except (KeyError, TypeError, ValueError) as e:
                raise ProbeParseError(target, "malformed report entry") from e
            return count, self._is_stale(latest.get("date"))

        if "count" in data:
            try:
                return int(data["count"]), False
            except (TypeError, ValueError) as e:
                raise ProbeParseError(target, "count is not numeric") from e
        raise ProbeParseError(target, "no reports or count field")

    def _is_stale(self, reported_at) -> bool:
        if not isinstance(reported_at, str):
            return False
        try:
            when = datetime.fromisoformat(reported_at.replace("Z", "+00:00"))
        except ValueError:
            return False
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return self._clock() - when > self.max_report_age

    @staticmethod
    def _parse_html(target: str, text: str) -> int:
        if not text or not text.strip():
            raise ProbeParseError(target, "empty page")
        html = text.lower()
        for pattern in REPORT_COUNT_PATTERNS:
            match = pattern.search(html)
            if match:
                return int(match.group(1))
        # No report banner on the page means no ongoing reports
        return 0
