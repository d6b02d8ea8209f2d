from abc import ABC, abstractmethod

from contracts.probe_outcome import ProbeOutcome, SourceKind


class Probe(ABC):
    """
    Abstract base class for probes. Implementations perform exactly one network
    check against one target and never retry internally.
    """

    kind: SourceKind
    timeout: float

    @abstractmethod
    async def attempt(self, target: str, deadline: float) -> ProbeOutcome:
        """
        Check the target once.

        Args:
            target (str): URL (or identifier) to check.
            deadline (float): Seconds allowed for this attempt.

        Returns:
            ProbeOutcome: The normalized outcome of the check.

        Raises:
            ProbeError: One of the typed probe failures.
        """
        pass
