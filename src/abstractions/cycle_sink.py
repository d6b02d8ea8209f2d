from abc import ABC, abstractmethod

from contracts.snapshot import Snapshot


class CycleSink(ABC):
    """
    Abstract destination for completed cycle records.
    """

    @abstractmethod
    def write(self, snapshot: Snapshot) -> bool:
        """
        Persist one completed cycle. Must not raise.

        Returns:
            bool: True if the record was written.
        """
