# location_source.py
# Fix producers: recorded trace playback and a simulated walk along a route.
# Real device access lives outside this package; anything yielding Fix works.

import json
import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Iterator, List, Optional, Sequence

import numpy as np

from .errors import LocationUnavailableError
from .geo_utils import EARTH_RADIUS_M, interpolate, segment_lengths
from .models import Coord, Fix

logger = logging.getLogger(__name__)


class LocationSource(ABC):
    """A push stream of raw fixes, consumed one by one."""

    name: str = "source"

    @abstractmethod
    def fixes(self) -> Iterator[Fix]:
        """Yield fixes in time order. Raises LocationUnavailableError when the source dies."""


# ---------------------------------------------------------------------------
# Trace recording / playback
# ---------------------------------------------------------------------------

def save_trace(fixes: Iterable[Optional[Fix]], path: str) -> int:
    """
    Write fixes to a JSON trace file. None entries are recorded as failed reads.

    Returns:
        Number of entries written.
    """
    trace = []
    start: Optional[float] = None
    for fix in fixes:
        if fix is None:
            trace.append({"elapsed": None, "location": None})
            continue
        if start is None:
            start = fix.timestamp
        trace.append({
            "elapsed": fix.timestamp - start,
            "location": {
                "lat": fix.coord.lat,
                "lon": fix.coord.lon,
                "accuracy": fix.accuracy,
                "timestamp": fix.timestamp,
            },
        })
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"recorded_at": datetime.now().isoformat(), "trace": trace}, f, indent=2)
    logger.info(f"GPS trace saved to {path} ({len(trace)} entries).")
    return len(trace)


class ReplayLocationSource(LocationSource):
    """
    Plays back a recorded trace file.

    Args:
        path:         JSON trace with a "trace" list of {"elapsed", "location"} entries.
        max_failures: Consecutive failed reads after which the source is declared lost.
    """

    name = "replay"

    def __init__(self, path: str, max_failures: int = 10) -> None:
        self.path = path
        self.max_failures = max_failures
        self.consecutive_failures = 0
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        self.trace: List[dict] = data["trace"]
        logger.info(f"Loaded GPS trace from {path} ({len(self.trace)} entries).")

    def fixes(self) -> Iterator[Fix]:
        for entry in self.trace:
            location = entry.get("location")
            if not location:
                self.consecutive_failures += 1
                if self.consecutive_failures >= self.max_failures:
                    raise LocationUnavailableError(
                        f"{self.consecutive_failures} consecutive failed reads in {self.path}"
                    )
                continue

            self.consecutive_failures = 0
            timestamp = location.get("timestamp")
            if timestamp is None:
                timestamp = entry.get("elapsed", 0.0)
            accuracy = location.get("accuracy")
            yield Fix(
                coord=Coord.from_dict(location),
                accuracy=float(accuracy) if accuracy is not None else 0.0,
                timestamp=float(timestamp),
            )


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------

class SimulatedWalkSource(LocationSource):
    """
    Walks along a polyline at constant speed and emits noisy fixes.

    Args:
        path:       Points to walk through.
        speed_kmh:  Walking speed.
        interval_s: Seconds between fixes.
        accuracy_m: Accuracy reported with every fix.
        jitter_m:   Standard deviation of the position noise (0 = exact).
        start_time: Timestamp of the first fix.
        seed:       RNG seed for reproducible noise.
    """

    name = "simulated"

    def __init__(
        self,
        path: Sequence[Coord],
        speed_kmh: float = 5.0,
        interval_s: float = 5.0,
        accuracy_m: float = 5.0,
        jitter_m: float = 0.0,
        start_time: float = 0.0,
        seed: Optional[int] = None,
    ) -> None:
        if len(path) < 2:
            raise ValueError("A simulated walk needs at least two points.")
        if speed_kmh <= 0 or interval_s <= 0:
            raise ValueError("Speed and interval must be positive.")
        self.path = list(path)
        self.speed_ms = speed_kmh / 3.6
        self.interval_s = interval_s
        self.accuracy_m = accuracy_m
        self.jitter_m = jitter_m
        self.start_time = start_time
        self._rng = np.random.default_rng(seed)

    def _point_at(self, travelled: float, lengths: List[float]) -> Coord:
        for i, length in enumerate(lengths):
            if travelled <= length:
                fraction = travelled / length if length > 0 else 0.0
                return interpolate(self.path[i], self.path[i + 1], fraction)
            travelled -= length
        return self.path[-1]

    def _with_noise(self, coord: Coord) -> Coord:
        if self.jitter_m <= 0:
            return coord
        north, east = self._rng.normal(0.0, self.jitter_m, size=2)
        d_lat = math.degrees(north / EARTH_RADIUS_M)
        d_lon = math.degrees(east / (EARTH_RADIUS_M * math.cos(math.radians(coord.lat))))
        return Coord(coord.lat + d_lat, coord.lon + d_lon)

    def fixes(self) -> Iterator[Fix]:
        lengths = segment_lengths(self.path)
        total = sum(lengths)
        step_m = self.speed_ms * self.interval_s
        count = int(math.ceil(total / step_m)) if step_m > 0 else 0

        for i in range(count + 1):
            travelled = i * step_m
            point = self.path[-1] if travelled >= total else self._point_at(travelled, lengths)
            yield Fix(
                coord=self._with_noise(point),
                accuracy=self.accuracy_m,
                timestamp=self.start_time + i * self.interval_s,
            )
