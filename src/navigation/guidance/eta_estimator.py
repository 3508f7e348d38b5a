# eta_estimator.py
# Arrival estimate from remaining distance and observed speed.

from typing import Dict, Tuple

from .models import ETAEstimate
from .nav_config import FALLBACK_SPEED_KMH, TravelProfile
from .speed_estimator import SpeedEstimator

MIN_USABLE_SPEED_KMH = 1.0


class ETAEstimator:
    """
    Picks the most trustworthy speed and turns it into an ETA.

    Priority: current speed while moving, then session average, then the
    profile's fallback speed.
    """

    def __init__(self, profile: TravelProfile = TravelProfile.WALKING) -> None:
        self.profile = profile

    @property
    def fallback_speed_kmh(self) -> float:
        return FALLBACK_SPEED_KMH[self.profile]

    def choose_speed(self, speeds: SpeedEstimator) -> Tuple[float, str]:
        """Returns (speed in km/h, source name)."""
        current = speeds.current_speed()
        if speeds.is_moving() and current > MIN_USABLE_SPEED_KMH:
            return current, "current"
        average = speeds.average_speed()
        if average > MIN_USABLE_SPEED_KMH:
            return average, "average"
        return self.fallback_speed_kmh, "fallback"

    def estimate(self, distance_remaining: float, speeds: SpeedEstimator, now: float) -> ETAEstimate:
        """
        Args:
            distance_remaining: Metres left on the route.
            speeds:             Speed estimator for the current session.
            now:                Current time in seconds.
        """
        speed, source = self.choose_speed(speeds)
        return self._at_speed(distance_remaining, speed, source, now)

    def scenarios(self, distance_remaining: float, speeds: SpeedEstimator, now: float) -> Dict[str, ETAEstimate]:
        """ETA at the chosen speed, the (floored) average speed and the fallback speed."""
        fallback = self.fallback_speed_kmh
        return {
            "at_current_speed": self.estimate(distance_remaining, speeds, now),
            "at_average_speed": self._at_speed(
                distance_remaining, max(speeds.average_speed(), fallback), "average", now
            ),
            "at_fallback_speed": self._at_speed(distance_remaining, fallback, "fallback", now),
        }

    @staticmethod
    def _at_speed(distance_m: float, speed_kmh: float, source: str, now: float) -> ETAEstimate:
        eta_seconds = max(0.0, distance_m) / 1000.0 / speed_kmh * 3600.0
        return ETAEstimate(
            eta_seconds=eta_seconds,
            arrival_timestamp=now + eta_seconds,
            speed_kmh=speed_kmh,
            speed_source=source,
        )
