import logging
from collections import deque
from typing import Dict, Iterable, List

from contracts.institution import Institution

logger = logging.getLogger(__name__)

HISTORY_CAPACITY = 50
BASELINE_WINDOW = 30
WARMUP_SAMPLES = 3
DEFAULT_BASELINE_MS = 1000.0


class BaselineTracker:
    """
    Per-institution rolling latency expectation.

    Early readings are blended with the configured prior; once warmed up, the
    estimate is the mean of the most recent BASELINE_WINDOW samples out of the
    HISTORY_CAPACITY kept.
    """

    def __init__(self, institutions: Iterable[Institution] = ()):
        # Structure: {institution_id: deque of latencies in ms}
        self._history: Dict[str, deque] = {}
        self._initial: Dict[str, float] = {}
        for institution in institutions:
            self.register(institution)

    def register(self, institution: Institution):
        self._initial[institution.id] = float(institution.initial_baseline_ms)
        self._history.setdefault(institution.id, deque(maxlen=HISTORY_CAPACITY))

    def record(self, institution_id: str, latency_ms: float):
        history = self._history.setdefault(
            institution_id, deque(maxlen=HISTORY_CAPACITY)
        )
        # deque(maxlen) drops the oldest sample once full
        history.append(float(latency_ms))
        logger.debug(
            f"Recorded {latency_ms}ms for {institution_id} ({len(history)} samples)"
        )

    def baseline(self, institution_id: str) -> float:
        initial = self._initial.get(institution_id, DEFAULT_BASELINE_MS)
        history = self._history.get(institution_id)
        if not history:
            return initial
        if len(history) < WARMUP_SAMPLES:
            mean = sum(history) / len(history)
            return (mean + initial) / 2
        window = list(history)[-BASELINE_WINDOW:]
        return sum(window) / len(window)

    def history(self, institution_id: str) -> List[float]:
        return list(self._history.get(institution_id, ()))

    def recent(self, institution_id: str, count: int) -> List[float]:
        """Return the last ``count`` samples, oldest first."""
        if count <= 0:
            return []
        return self.history(institution_id)[-count:]
