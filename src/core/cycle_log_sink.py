import logging
import os

import orjson

from abstractions.cycle_sink import CycleSink
from config.config import Config
from contracts.snapshot import Snapshot

logger = logging.getLogger(__name__)


class JsonLinesCycleSink(CycleSink):
    """
    Appends one JSON document per completed cycle to a newline-delimited file.
    Persistence is best effort: write failures are logged and swallowed.
    """

    def __init__(self, path: str = None):
        self.path = path or Config.MONITOR_LOG_PATH

    def write(self, snapshot: Snapshot) -> bool:
        try:
            line = orjson.dumps(snapshot.model_dump(mode="json")) + b"\n"
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "ab") as fh:
                fh.write(line)
            return True
        except (OSError, TypeError) as e:
            logger.warning(f"Could not append cycle {snapshot.cycle} to {self.path}: {e}")
            return False
