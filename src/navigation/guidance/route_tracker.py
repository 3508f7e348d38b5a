# route_tracker.py
# Projects positions onto the active route and tracks step progress.
# advance() is the pure core; RouteProgressTracker owns the state and callbacks.

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence, Tuple

from .geo_utils import distance_between, project_onto_segment, segment_lengths
from .models import Coord, EventType, NavEvent, ProgressState, Route
from .nav_config import TrackerConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackerState:
    step_index: int = 0
    completed: bool = False


@dataclass(frozen=True)
class Projection:
    segment_index: int
    point: Coord
    distance: float              # metres from the position to the route


def closest_point_on_route(position: Coord, polyline: Sequence[Coord]) -> Projection:
    """Nearest point on any segment of the polyline."""
    best: Optional[Projection] = None
    for i in range(len(polyline) - 1):
        point, _ = project_onto_segment(position, polyline[i], polyline[i + 1])
        dist = distance_between(position, point)
        if best is None or dist < best.distance:
            best = Projection(segment_index=i, point=point, distance=dist)
    return best


def remaining_distance(
    projection: Projection, polyline: Sequence[Coord], lengths: Sequence[float]
) -> float:
    """Projected point → end of its segment, plus every later segment."""
    end_of_segment = polyline[projection.segment_index + 1]
    return distance_between(projection.point, end_of_segment) + sum(
        lengths[projection.segment_index + 1:]
    )


def advance(
    state: TrackerState,
    route: Route,
    position: Coord,
    config: TrackerConfig,
    lengths: Optional[Sequence[float]] = None,
    timestamp: float = 0.0,
) -> Tuple[TrackerState, ProgressState, List[NavEvent]]:
    """
    Compute one progress update without touching any outside state.

    Args:
        state:     Tracker state before this position.
        route:     Active route.
        position:  Current (stabilized) position.
        config:    Tracker thresholds.
        lengths:   Precomputed segment lengths; computed when omitted.
        timestamp: Stamp for the emitted events.

    Returns:
        (new state, progress snapshot, events fired by this update)
    """
    polyline = route.polyline
    if lengths is None:
        lengths = segment_lengths(polyline)
    total = sum(lengths)
    events: List[NavEvent] = []

    projection = closest_point_on_route(position, polyline)
    is_off_route = projection.distance > config.off_route_threshold_m

    # Waypoint advance, never backwards
    step = state.step_index
    if step < len(route.instructions) - 1 and step + 1 < len(polyline):
        to_waypoint = distance_between(position, polyline[step + 1])
        if to_waypoint < config.step_advance_threshold_m:
            step += 1
            events.append(NavEvent(EventType.STEP_CHANGED, timestamp, {"step": step}))

    # Completion latch
    completed = state.completed
    to_destination = distance_between(position, polyline[-1])
    if not completed and to_destination < config.completion_threshold_m:
        completed = True
        events.append(NavEvent(EventType.ROUTE_COMPLETE, timestamp))

    remaining = remaining_distance(projection, polyline, lengths)
    if total > 0:
        percent = max(0.0, min(100.0, (total - remaining) / total * 100))
    else:
        percent = 100.0 if completed else 0.0

    if is_off_route:
        events.append(
            NavEvent(EventType.OFF_ROUTE, timestamp, {"distance": projection.distance})
        )

    next_index = step + 1 if step + 1 < len(polyline) else len(polyline) - 1
    progress = ProgressState(
        current_step_index=step,
        distance_to_next_waypoint=distance_between(position, polyline[next_index]),
        distance_remaining=remaining,
        percent_complete=percent,
        distance_to_route=projection.distance,
        is_off_route=is_off_route,
        is_complete=completed,
    )
    return replace(state, step_index=step, completed=completed), progress, events


class RouteProgressTracker:
    """
    Stateful progress tracker for one route.

    Usage:
        tracker = RouteProgressTracker(route, config.tracker,
                                       on_step_changed=..., on_off_route=...,
                                       on_route_complete=...)

        # Inside the position loop:
        progress = tracker.update(position)
    """

    def __init__(
        self,
        route: Route,
        config: Optional[TrackerConfig] = None,
        on_step_changed: Optional[Callable[[int], None]] = None,
        on_off_route: Optional[Callable[[float], None]] = None,
        on_route_complete: Optional[Callable[[], None]] = None,
    ) -> None:
        self.config = config or TrackerConfig()
        self.on_step_changed = on_step_changed
        self.on_off_route = on_off_route
        self.on_route_complete = on_route_complete
        self._state = TrackerState()
        self._load(route)

    def _load(self, route: Route) -> None:
        self._route = route
        self._lengths = segment_lengths(route.polyline)
        self._total_distance = sum(self._lengths)

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def route(self) -> Route:
        return self._route

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def current_step_index(self) -> int:
        return self._state.step_index

    @property
    def is_complete(self) -> bool:
        return self._state.completed

    @property
    def total_distance(self) -> float:
        return self._total_distance

    # ------------------------------------------------------------------
    # Core method: call on every accepted position
    # ------------------------------------------------------------------

    def update(self, position: Coord, timestamp: Optional[float] = None) -> ProgressState:
        progress, _ = self.update_with_events(position, timestamp)
        return progress

    def update_with_events(
        self, position: Coord, timestamp: Optional[float] = None
    ) -> Tuple[ProgressState, List[NavEvent]]:
        """Like update(), also returning the events this position fired."""
        if timestamp is None:
            timestamp = time.time()
        self._state, progress, events = advance(
            self._state, self._route, position, self.config, self._lengths, timestamp
        )
        for event in events:
            self._dispatch(event)
        return progress, events

    def reset(self, route: Optional[Route] = None) -> None:
        """Back to step 0 with the completion latch cleared, optionally on a new route."""
        if route is not None:
            self._load(route)
        self._state = TrackerState()
        logger.info(f"Route tracker reset ({len(self._route.polyline)} points, "
                    f"{self._total_distance:.0f} m).")

    def _dispatch(self, event: NavEvent) -> None:
        if event.type == EventType.STEP_CHANGED:
            logger.info(f"Step {event.data['step']} reached.")
            if self.on_step_changed:
                self.on_step_changed(event.data["step"])
        elif event.type == EventType.ROUTE_COMPLETE:
            logger.info("Destination reached.")
            if self.on_route_complete:
                self.on_route_complete()
        elif event.type == EventType.OFF_ROUTE:
            logger.debug(f"Off route by {event.data['distance']:.1f} m.")
            if self.on_off_route:
                self.on_off_route(event.data["distance"])
