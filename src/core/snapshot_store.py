import logging
from typing import Optional

from contracts.snapshot import Snapshot, placeholder_snapshot

logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    Owner of the current snapshot. The scheduler replaces it wholesale at the end
    of each cycle; readers only ever get a fully formed, immutable value.
    """

    def __init__(self):
        self._current: Optional[Snapshot] = None

    @property
    def current(self) -> Optional[Snapshot]:
        return self._current

    def replace(self, snapshot: Snapshot) -> Optional[Snapshot]:
        """Install a new snapshot and return the one it supersedes."""
        previous, self._current = self._current, snapshot
        logger.debug(f"Snapshot replaced: cycle {snapshot.cycle} ({snapshot.summary.total} institutions)")
        return previous

    def as_document(self) -> dict:
        if self._current is None:
            return placeholder_snapshot()
        return self._current.model_dump(mode="json")
