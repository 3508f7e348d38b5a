# nav_logger.py
# Event sink for a navigation session.
# Appends events and progress snapshots to a JSONL file.

import json
import logging
import os
from datetime import datetime
from typing import List, Optional

from .models import Coord, NavEvent, ProgressState
from .nav_config import NavConfig

# Standard Python logger, configure at app entry point if needed
logger = logging.getLogger(__name__)


class NavLogger:
    """
    Persists the events of the current session as JSON lines.

    Args:
        config: NavConfig instance for file paths and directories.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        os.makedirs(self.config.log_dir, exist_ok=True)

    @property
    def filepath(self) -> str:
        return self.config.session_filepath

    def log_event(self, event: NavEvent) -> None:
        """Append a single navigation event."""
        self._append(event.to_dict())

    def log_progress(self, progress: ProgressState, position: Coord, timestamp: float) -> None:
        """
        Append a progress snapshot.

        Args:
            progress:  ProgressState from RouteProgressTracker.
            position:  Position the snapshot was computed for.
            timestamp: Fix time.
        """
        entry = {
            "event": "progress",
            "timestamp": timestamp,
            "lat": position.lat,
            "lon": position.lon,
            **progress.to_dict(),
        }
        self._append(entry)

    def read_session(self) -> List[dict]:
        """Every entry of the current session file, oldest first."""
        try:
            with open(self.filepath, "r", encoding="utf-8") as f:
                return [json.loads(line) for line in f if line.strip()]
        except FileNotFoundError:
            return []

    def _append(self, entry: dict) -> None:
        entry = {"logged_at": datetime.now().isoformat(), **entry}
        try:
            with open(self.filepath, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except IOError as e:
            logger.error(f"Failed to write event log: {e}")
