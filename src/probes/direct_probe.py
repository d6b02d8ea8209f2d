import logging

import httpx

from abstractions.probe import Probe
from config.config import Config
from contracts.probe_outcome import ProbeOutcome, SourceKind
from core.profiler import Profiler
from probes.http import raise_for_blocked, timed_get

logger = logging.getLogger(__name__)


class DirectProbe(Probe):
    """
    Reachability and latency check against an institution's own public URL.
    """

    kind = SourceKind.DIRECT

    def __init__(self, client: httpx.AsyncClient, timeout: float = None):
        self.client = client
        self.timeout = timeout or Config.DIRECT_TIMEOUT_SECONDS

    @Profiler.profile
    async def attempt(self, target: str, deadline: float) -> ProbeOutcome:
        resp, latency_ms = await timed_get(self.client, target, deadline)
        raise_for_blocked(target, resp, latency_ms)

        reachable = 200 <= resp.status_code < 400
        if reachable:
            logger.info(f"Direct probe OK for {target}: HTTP {resp.status_code} in {latency_ms}ms")
        else:
            logger.warning(
                f"Direct probe failed for {target}: HTTP {resp.status_code} in {latency_ms}ms"
            )
        return ProbeOutcome(
            source=self.kind,
            reachable=reachable,
            target=target,
            latency_ms=latency_ms,
            status_code=resp.status_code,
            confidence=100,
        )
