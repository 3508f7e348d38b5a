# models.py
# Shared data structures and enums used across all modules.
# Timestamps are seconds (float) on one clock per session.

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple


# ---------------------------------------------------------------------------
# Coordinate and raw fix
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coord:
    """Immutable geographic coordinate."""
    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lon <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lon}")

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lon": self.lon}

    @staticmethod
    def from_dict(d: dict) -> "Coord":
        return Coord(float(d["lat"]), float(d.get("lon", d.get("lng"))))


@dataclass(frozen=True)
class Fix:
    """A raw position reading from the location source."""
    coord: Coord
    accuracy: float              # radius in metres
    timestamp: float

    def __post_init__(self) -> None:
        if self.accuracy < 0:
            raise ValueError(f"Accuracy must be >= 0, got {self.accuracy}")


@dataclass(frozen=True)
class StabilizedPosition:
    """A fix that passed every gate and was smoothed."""
    coord: Coord
    accuracy: float
    confidence: float            # 0..1, grows as the window fills
    timestamp: float


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Instruction:
    """A single turn-by-turn step."""
    text: str
    distance: float              # metres
    duration: float              # seconds
    maneuver: str = "straight"

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "distance": self.distance,
            "duration": self.duration,
            "maneuver": self.maneuver,
        }

    @staticmethod
    def from_dict(d: dict) -> "Instruction":
        return Instruction(
            text=d["text"],
            distance=float(d["distance"]),
            duration=float(d["duration"]),
            maneuver=d.get("maneuver", "straight"),
        )


@dataclass(frozen=True)
class Route:
    """Geometry and instructions returned by the routing provider."""
    polyline: Tuple[Coord, ...]
    instructions: Tuple[Instruction, ...]
    total_distance: float        # metres, as reported by the provider
    total_duration: float        # seconds

    def __post_init__(self) -> None:
        if len(self.polyline) < 2:
            raise ValueError("A route needs at least two polyline points.")

    @staticmethod
    def build(
        polyline: Sequence[Coord],
        instructions: Sequence[Instruction] = (),
        total_distance: float = 0.0,
        total_duration: float = 0.0,
    ) -> "Route":
        return Route(tuple(polyline), tuple(instructions), total_distance, total_duration)

    @property
    def destination(self) -> Coord:
        return self.polyline[-1]

    def to_dict(self) -> dict:
        return {
            "polyline": [c.to_dict() for c in self.polyline],
            "instructions": [i.to_dict() for i in self.instructions],
            "total_distance": self.total_distance,
            "total_duration": self.total_duration,
        }

    @staticmethod
    def from_dict(d: dict) -> "Route":
        return Route.build(
            polyline=[Coord.from_dict(c) for c in d["polyline"]],
            instructions=[Instruction.from_dict(i) for i in d.get("instructions", [])],
            total_distance=float(d.get("total_distance", 0.0)),
            total_duration=float(d.get("total_duration", 0.0)),
        )


# ---------------------------------------------------------------------------
# Progress snapshot
# ---------------------------------------------------------------------------

@dataclass
class ProgressState:
    """Returned by RouteProgressTracker.update() every position update."""
    current_step_index: int = 0
    distance_to_next_waypoint: float = 0.0     # metres
    distance_remaining: float = 0.0            # metres
    percent_complete: float = 0.0
    distance_to_route: float = 0.0             # metres
    is_off_route: bool = False
    is_complete: bool = False
    off_route_since: Optional[float] = None
    reroute_attempts: int = 0
    last_reroute_time: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "step": self.current_step_index,
            "distance_to_next": round(self.distance_to_next_waypoint, 1),
            "distance_remaining": round(self.distance_remaining, 1),
            "percent_complete": round(self.percent_complete, 1),
            "distance_to_route": round(self.distance_to_route, 1),
            "off_route": self.is_off_route,
            "complete": self.is_complete,
            "reroute_attempts": self.reroute_attempts,
        }


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

class EventType(Enum):
    STEP_CHANGED         = "step_changed"
    OFF_ROUTE            = "off_route"
    ROUTE_COMPLETE       = "route_complete"
    REROUTE_REQUESTED    = "reroute_requested"
    REROUTE_SUCCEEDED    = "reroute_succeeded"
    REROUTE_FAILED       = "reroute_failed"
    LOCATION_UNAVAILABLE = "location_unavailable"


@dataclass(frozen=True)
class NavEvent:
    type: EventType
    timestamp: float
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"event": self.type.value, "timestamp": self.timestamp, **self.data}


class NavigationStatus(Enum):
    IDLE          = "idle"
    NAVIGATING    = "navigating"
    REROUTING     = "rerouting"
    ARRIVED       = "arrived"
    LOCATION_LOST = "location_lost"


@dataclass
class ETAEstimate:
    eta_seconds: float
    arrival_timestamp: float
    speed_kmh: float
    speed_source: str            # "current" | "average" | "fallback"


@dataclass
class NavigationUpdate:
    """Everything a UI needs after one fix has been processed."""
    status: NavigationStatus
    position: Optional[StabilizedPosition] = None
    progress: Optional[ProgressState] = None
    eta: Optional[ETAEstimate] = None
    events: List[NavEvent] = field(default_factory=list)
    reroute_needed: bool = False
