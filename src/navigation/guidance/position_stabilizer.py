# position_stabilizer.py
# Turns noisy location fixes into trustworthy positions.
# Call accept() with every raw fix; only fixes that pass all gates produce output.

import logging
from collections import deque
from typing import Deque, Optional, Tuple

import numpy as np

from .geo_utils import distance_between
from .models import Coord, Fix, StabilizedPosition
from .nav_config import StabilizerConfig

logger = logging.getLogger(__name__)


class PositionStabilizer:
    """
    Accuracy / throttle / plausibility filter with windowed smoothing.

    Rejected fixes are silent drops: accept() returns None and nothing but
    a debug log line records them.

    Usage:
        stabilizer = PositionStabilizer(config.stabilizer)

        # Inside the location loop:
        position = stabilizer.accept(fix)
        if position is not None:
            ...
    """

    def __init__(self, config: Optional[StabilizerConfig] = None) -> None:
        self.config = config or StabilizerConfig()
        self._window: Deque[Fix] = deque(maxlen=max(1, self.config.smoothing_window))
        self._last_emitted: Optional[StabilizedPosition] = None

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def current_position(self) -> Optional[Coord]:
        return self._last_emitted.coord if self._last_emitted else None

    @property
    def last_emitted(self) -> Optional[StabilizedPosition]:
        return self._last_emitted

    @property
    def window_size(self) -> int:
        return len(self._window)

    # ------------------------------------------------------------------
    # Core method
    # ------------------------------------------------------------------

    def accept(self, fix: Fix) -> Optional[StabilizedPosition]:
        """
        Run a raw fix through the gates and smooth it into the window.

        Args:
            fix: Raw reading from the location source.

        Returns:
            StabilizedPosition when a position is emitted, otherwise None.
        """
        cfg = self.config

        # 1. Accuracy gate
        if fix.accuracy > cfg.max_accuracy_m:
            logger.debug(f"Reject: accuracy {fix.accuracy:.0f} m > {cfg.max_accuracy_m:.0f} m")
            return None

        reference = self._reference()
        if reference is not None:
            ref_coord, ref_time = reference
            elapsed = fix.timestamp - ref_time

            # 2. Throttle gate
            if elapsed < cfg.min_update_interval_s:
                logger.debug(f"Throttle: {elapsed:.1f}s < {cfg.min_update_interval_s:.1f}s")
                return None

            # 3. Plausibility gate
            jump = distance_between(ref_coord, fix.coord)
            if elapsed <= 0:
                logger.debug(f"Reject: non-monotonic timestamp ({elapsed:.1f}s)")
                return None
            speed = jump / elapsed
            if speed > cfg.speed_threshold_ms:
                logger.debug(
                    f"Reject: implied speed {speed:.1f} m/s ({jump:.0f} m in {elapsed:.1f}s)"
                )
                return None

        self._window.append(fix)

        if len(self._window) < min(2, cfg.smoothing_window):
            logger.debug(f"Buffering {len(self._window)}/{cfg.smoothing_window}")
            return None

        position = self._smoothed(fix.timestamp)
        self._last_emitted = position
        logger.debug(
            f"Emit {position.coord.lat:.7f},{position.coord.lon:.7f} "
            f"acc {position.accuracy:.1f} m conf {position.confidence:.2f}"
        )
        return position

    def reset(self) -> None:
        """Forget the window and emission history (e.g. location source switched)."""
        self._window.clear()
        self._last_emitted = None
        logger.info("Position stabilizer reset.")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _reference(self) -> Optional[Tuple[Coord, float]]:
        """Last emitted position, or the buffered fix while nothing was emitted yet."""
        if self._last_emitted is not None:
            return self._last_emitted.coord, self._last_emitted.timestamp
        if self._window:
            newest = self._window[-1]
            return newest.coord, newest.timestamp
        return None

    def _smoothed(self, timestamp: float) -> StabilizedPosition:
        lats = np.array([f.coord.lat for f in self._window])
        lons = np.array([f.coord.lon for f in self._window])
        accuracies = np.array([f.accuracy for f in self._window])
        weights = 1.0 / (accuracies + 1.0)

        return StabilizedPosition(
            coord=Coord(
                float(np.average(lats, weights=weights)),
                float(np.average(lons, weights=weights)),
            ),
            accuracy=float(accuracies.mean()),
            confidence=min(1.0, len(self._window) / self.config.smoothing_window),
            timestamp=timestamp,
        )
