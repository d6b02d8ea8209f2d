"""
Typed probe failures.

Probes raise these instead of returning sentinel values; the source resolver
catches them and moves on to the next fallback source.
"""
from typing import Optional


class ProbeError(Exception):
    """Base class for every failure a probe attempt can produce."""

    kind = "probe-error"

    def __init__(self, target: str, message: str = ""):
        self.target = target
        detail = f"{self.kind} for {target}"
        super().__init__(f"{detail}: {message}" if message else detail)


class ProbeTimeout(ProbeError):
    kind = "probe-timeout"


class ProbeNetworkError(ProbeError):
    kind = "probe-network-error"


class ProbeBlocked(ProbeError):
    """The target answered with HTTP 403/429; latency is still meaningful."""

    kind = "probe-blocked"

    def __init__(self, target: str, status_code: int, latency_ms: Optional[float]):
        self.status_code = status_code
        self.latency_ms = latency_ms
        super().__init__(target, f"HTTP {status_code}")


class ProbeParseError(ProbeError):
    kind = "probe-parse-error"
