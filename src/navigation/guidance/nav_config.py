# nav_config.py
# All tuneable constants in one place.
# Pass a NavConfig instance to every module that needs settings.

import os
from dataclasses import dataclass, field, replace
from enum import Enum


# ---------------------------------------------------------------------------
# Travel profiles
# ---------------------------------------------------------------------------

class TravelProfile(Enum):
    WALKING = "walking"
    CYCLING = "cycling"
    DRIVING = "driving"


class SiteType(Enum):
    OPEN_ROAD  = "open_road"       # city streets, looser thresholds
    CAMPGROUND = "campground"      # dense sites, tighter thresholds


# Fallback speeds used when nothing better is known (km/h)
FALLBACK_SPEED_KMH = {
    TravelProfile.WALKING: 5.0,
    TravelProfile.CYCLING: 12.0,
    TravelProfile.DRIVING: 30.0,
}

# Minimum time between two emitted positions (seconds)
MIN_UPDATE_INTERVAL_S = {
    TravelProfile.WALKING: 5.0,
    TravelProfile.CYCLING: 3.0,
    TravelProfile.DRIVING: 1.5,
}

# Highest plausible speed between two emitted positions (m/s)
MAX_PLAUSIBLE_SPEED_MS = {
    TravelProfile.WALKING: 3.0,
    TravelProfile.CYCLING: 10.0,
    TravelProfile.DRIVING: 25.0,
}

# Smoothing window per profile; the averaged position trails a moving user
# and the plausibility gate measures from it
SMOOTHING_WINDOW = {
    TravelProfile.WALKING: 3,
    TravelProfile.CYCLING: 3,
    TravelProfile.DRIVING: 2,
}


# ---------------------------------------------------------------------------
# Per-component settings
# ---------------------------------------------------------------------------

@dataclass
class StabilizerConfig:
    max_accuracy_m: float = 30.0           # fixes less accurate than this are dropped
    min_update_interval_s: float = 5.0
    speed_threshold_ms: float = 3.0        # implied speed above this is a jump
    smoothing_window: int = 7              # positions averaged per emission


@dataclass
class TrackerConfig:
    off_route_threshold_m: float = 50.0
    step_advance_threshold_m: float = 20.0
    completion_threshold_m: float = 15.0


@dataclass
class SpeedConfig:
    noise_floor_m: float = 1.0             # smaller moves are GPS jitter
    history_size: int = 20
    smoothing_samples: int = 5             # samples used for current speed
    max_speed_kmh: float = 50.0            # spikes above this are capped
    movement_threshold_kmh: float = 0.5


@dataclass(frozen=True)
class ReroutePolicy:
    name: str
    off_route_threshold_m: float
    auto_reroute_threshold_m: float        # emergency reroute, skips the wait
    minimum_movement_m: float
    consideration_time_s: float
    cooldown_s: float
    max_reroute_attempts: int


GENERAL_POLICY = ReroutePolicy(
    name="general",
    off_route_threshold_m=50.0,
    auto_reroute_threshold_m=100.0,
    minimum_movement_m=5.0,
    consideration_time_s=10.0,
    cooldown_s=10.0,
    max_reroute_attempts=3,
)

CAMPGROUND_POLICY = ReroutePolicy(
    name="campground",
    off_route_threshold_m=25.0,
    auto_reroute_threshold_m=50.0,
    minimum_movement_m=8.0,
    consideration_time_s=15.0,
    cooldown_s=30.0,
    max_reroute_attempts=2,
)

POLICIES = {
    SiteType.OPEN_ROAD: GENERAL_POLICY,
    SiteType.CAMPGROUND: CAMPGROUND_POLICY,
}


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class NavConfig:
    profile: TravelProfile = TravelProfile.WALKING
    stabilizer: StabilizerConfig = field(default_factory=StabilizerConfig)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    speed: SpeedConfig = field(default_factory=SpeedConfig)
    reroute: ReroutePolicy = GENERAL_POLICY

    # Logging
    log_dir: str = "."                     # directory for the session log
    session_filename: str = "nav_session.jsonl"

    def __post_init__(self):
        self.sync_thresholds()

    def sync_thresholds(self) -> None:
        """Make the tracker use the reroute policy's off-route threshold."""
        if self.tracker.off_route_threshold_m != self.reroute.off_route_threshold_m:
            self.tracker = replace(
                self.tracker, off_route_threshold_m=self.reroute.off_route_threshold_m
            )

    @property
    def fallback_speed_kmh(self) -> float:
        return FALLBACK_SPEED_KMH[self.profile]

    @property
    def session_filepath(self) -> str:
        return os.path.join(self.log_dir, self.session_filename)

    @classmethod
    def for_profile(
        cls,
        profile: TravelProfile = TravelProfile.WALKING,
        site: SiteType = SiteType.OPEN_ROAD,
        **overrides,
    ) -> "NavConfig":
        """
        Build a config whose thresholds match a travel profile and site type.

        The tracker's off-route threshold follows the reroute policy so the
        two components agree on what "off route" means.

        Args:
            profile:   Travel mode used for throttling and fallback speed.
            site:      Selects the named reroute policy.
            overrides: Any NavConfig field to set explicitly.
        """
        policy = POLICIES[site]
        config = cls(
            profile=profile,
            stabilizer=StabilizerConfig(
                min_update_interval_s=MIN_UPDATE_INTERVAL_S[profile],
                speed_threshold_ms=MAX_PLAUSIBLE_SPEED_MS[profile],
                smoothing_window=SMOOTHING_WINDOW[profile],
            ),
            tracker=TrackerConfig(off_route_threshold_m=policy.off_route_threshold_m),
            reroute=policy,
        )
        for key, value in overrides.items():
            if not hasattr(config, key):
                raise ValueError(f"Unknown NavConfig field: {key}")
            setattr(config, key, value)
        config.sync_thresholds()
        return config
