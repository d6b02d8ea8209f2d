import logging

import httpx

from abstractions.probe import Probe
from config.config import Config
from contracts.errors import ProbeNetworkError, ProbeParseError
from contracts.probe_outcome import ProbeOutcome, SourceKind
from core.profiler import Profiler
from probes.http import BROWSER_HEADERS, raise_for_blocked, timed_get

logger = logging.getLogger(__name__)

HEALTHY_INDICATORS = {"none", "operational"}
DEGRADED_INDICATORS = {"minor", "major", "critical", "maintenance"}

STATUS_API_HEADERS = {**BROWSER_HEADERS, "Accept": "application/json"}


class OfficialStatusProbe(Probe):
    """
    Reads a statuspage-style ``status.json`` document published by the institution.
    """

    kind = SourceKind.OFFICIAL_STATUS
    confidence = 95

    def __init__(self, client: httpx.AsyncClient, timeout: float = None):
        self.client = client
        self.timeout = timeout or Config.STATUS_API_TIMEOUT_SECONDS

    @Profiler.profile
    async def attempt(self, target: str, deadline: float) -> ProbeOutcome:
        resp, latency_ms = await timed_get(
            self.client, target, deadline, headers=STATUS_API_HEADERS
        )
        raise_for_blocked(target, resp, latency_ms)
        if not 200 <= resp.status_code < 300:
            raise ProbeNetworkError(target, f"HTTP {resp.status_code}")

        indicator = self._parse_indicator(target, resp)
        healthy = indicator in HEALTHY_INDICATORS
        logger.info(f"Status API for {target}: indicator={indicator}")
        return ProbeOutcome(
            source=self.kind,
            reachable=healthy,
            degraded=not healthy,
            indicator=indicator,
            target=target,
            status_code=resp.status_code,
            confidence=self.confidence,
        )

    @staticmethod
    def _parse_indicator(target: str, resp) -> str:
        try:
            data = resp.json()
        except ValueError as e:
            raise ProbeParseError(target, "body is not JSON") from e
        status = data.get("status") if isinstance(data, dict) else None
        if not isinstance(status, dict) or not isinstance(status.get("indicator"), str):
            raise ProbeParseError(target, "missing status.indicator")
        indicator = status["indicator"].lower()
        if indicator not in HEALTHY_INDICATORS | DEGRADED_INDICATORS:
            raise ProbeParseError(target, f"unknown indicator {indicator!r}")
        return indicator
