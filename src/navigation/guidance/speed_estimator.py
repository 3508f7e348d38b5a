# speed_estimator.py
# Instantaneous and average speed from accepted positions.

from collections import deque
from typing import Deque, Optional, Tuple

from .geo_utils import distance_between
from .models import Coord
from .nav_config import SpeedConfig


class SpeedEstimator:
    """
    Sliding-window speed tracker fed with stabilized positions.

    All speeds are in km/h. Timestamps are whatever clock the caller uses,
    in seconds.
    """

    def __init__(self, config: Optional[SpeedConfig] = None) -> None:
        self.config = config or SpeedConfig()
        self._samples: Deque[Tuple[Coord, float]] = deque(maxlen=self.config.history_size)
        self._total_distance: float = 0.0      # metres
        self._start_time: Optional[float] = None
        self._last_time: Optional[float] = None
        self._max_speed: float = 0.0

    def add_position(self, position: Coord, timestamp: float) -> bool:
        """
        Record a position. Returns False when it was dropped as jitter.
        """
        if self._samples:
            last_position, _ = self._samples[-1]
            moved = distance_between(last_position, position)
            if moved < self.config.noise_floor_m:
                return False
            self._total_distance += moved
        else:
            self._start_time = timestamp

        self._samples.append((position, timestamp))
        self._last_time = timestamp
        self._max_speed = max(self._max_speed, self.current_speed())
        return True

    def current_speed(self) -> float:
        recent = list(self._samples)[-self.config.smoothing_samples:]
        if len(recent) < 2:
            return 0.0

        distance = 0.0
        for (p1, _), (p2, _) in zip(recent, recent[1:]):
            distance += distance_between(p1, p2)
        elapsed = recent[-1][1] - recent[0][1]
        if elapsed <= 0:
            return 0.0

        return min(distance / elapsed * 3.6, self.config.max_speed_kmh)

    def average_speed(self) -> float:
        if len(self._samples) < 2 or self._start_time is None:
            return 0.0
        elapsed = self._last_time - self._start_time
        if elapsed <= 0:
            return 0.0
        return self._total_distance / elapsed * 3.6

    def is_moving(self) -> bool:
        return self.current_speed() > self.config.movement_threshold_kmh

    @property
    def max_speed(self) -> float:
        return self._max_speed

    @property
    def total_distance(self) -> float:
        return self._total_distance

    def is_stationary(self, now: float, threshold_s: float = 300.0) -> bool:
        """
        True when no movement above the noise floor was recorded for threshold_s
        seconds. Jitter never reaches the history, so the newest sample marks
        the last real movement.

        is_moving() is not consulted: current speed comes from stored samples
        only and keeps its last value while the user stands still, so it
        would hold a stopped user "moving" indefinitely.
        """
        if len(self._samples) < 2:
            return False
        _, last_time = self._samples[-1]
        return now - last_time > threshold_s

    def stats(self) -> dict:
        return {
            "samples": len(self._samples),
            "total_distance_m": self._total_distance,
            "current_speed_kmh": self.current_speed(),
            "average_speed_kmh": self.average_speed(),
            "max_speed_kmh": self._max_speed,
            "moving": self.is_moving(),
        }

    def reset(self) -> None:
        self._samples.clear()
        self._total_distance = 0.0
        self._start_time = None
        self._last_time = None
        self._max_speed = 0.0
