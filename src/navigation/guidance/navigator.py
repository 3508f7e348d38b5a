# navigator.py
# Public entry point for the guidance core.
# Owns no business logic; wires the specialist modules together per fix.

import asyncio
import logging
from typing import Callable, List, Optional, Tuple

from .errors import LocationUnavailableError, RoutingError
from .eta_estimator import ETAEstimator
from .location_source import LocationSource
from .models import (
    Coord,
    EventType,
    Fix,
    NavEvent,
    NavigationStatus,
    NavigationUpdate,
    Route,
)
from .nav_config import NavConfig
from .nav_logger import NavLogger
from .position_stabilizer import PositionStabilizer
from .reroute_engine import RerouteDecisionEngine
from .route_tracker import RouteProgressTracker
from .routing_provider import RoutingProvider
from .speed_estimator import SpeedEstimator

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (NavigationStatus.NAVIGATING, NavigationStatus.REROUTING)


class NavigationSession:
    """
    High-level navigation facade for one user.

    Typical lifecycle:
        session = NavigationSession(HttpRoutingProvider("http://localhost:5000"))
        await session.start_navigation(Coord(51.589, 3.721), Coord(51.592, 3.725))

        # Location loop:
        update = session.handle_fix(fix)
        if update.reroute_needed:
            asyncio.create_task(session.reroute())

    Not thread-safe: feed fixes and reroute results from a single owner.

    Args:
        provider:   Routing provider used for the initial route and reroutes.
        config:     Optional NavConfig; defaults to NavConfig().
        event_sink: Optional NavLogger receiving every event and snapshot.
        on_event:   Optional callback invoked with every NavEvent.
    """

    def __init__(
        self,
        provider: RoutingProvider,
        config: Optional[NavConfig] = None,
        event_sink: Optional[NavLogger] = None,
        on_event: Optional[Callable[[NavEvent], None]] = None,
    ) -> None:
        self.config = config or NavConfig()
        self._provider = provider
        self._sink = event_sink
        self._on_event = on_event

        self._stabilizer = PositionStabilizer(self.config.stabilizer)
        self._speeds = SpeedEstimator(self.config.speed)
        self._eta = ETAEstimator(self.config.profile)
        self._tracker: Optional[RouteProgressTracker] = None
        self._engine: Optional[RerouteDecisionEngine] = None

        self._destination: Optional[Coord] = None
        self._status = NavigationStatus.IDLE
        self._reroute_in_flight = False
        self._last_position: Optional[Coord] = None
        self._generation = 0                    # bumped on every start/stop
        self._last_time: float = 0.0

    # ------------------------------------------------------------------
    # Navigation control
    # ------------------------------------------------------------------

    async def start_navigation(self, origin: Coord, destination: Coord) -> Tuple[bool, str]:
        """
        Request a route and begin tracking.

        Returns:
            (success, message)
        """
        logger.info(f"Calculating route: {origin} → {destination}")
        try:
            route = await self._provider.request_route(origin, destination, self.config.profile)
        except RoutingError as e:
            logger.warning(f"Route calculation failed: {e}")
            return False, str(e)

        self.start_with_route(route, destination)
        return True, f"Route ready. {len(route.instructions)} steps."

    def start_with_route(self, route: Route, destination: Optional[Coord] = None) -> None:
        """Begin tracking an already computed route."""
        self._generation += 1
        self._destination = destination or route.destination
        self._tracker = RouteProgressTracker(route, self.config.tracker)
        self._engine = RerouteDecisionEngine(self.config.reroute)
        self._stabilizer.reset()
        self._speeds.reset()
        self._reroute_in_flight = False
        self._status = NavigationStatus.NAVIGATING
        logger.info(f"Route ready: {len(route.instructions)} steps, "
                    f"{self._tracker.total_distance:.0f} m.")

    def stop_navigation(self) -> None:
        """End the session and drop all per-route state."""
        self._generation += 1
        self._tracker = None
        self._reroute_in_flight = False
        self._engine = None
        self._destination = None
        self._stabilizer.reset()
        self._speeds.reset()
        self._status = NavigationStatus.IDLE
        logger.info("Navigation stopped.")

    def switch_source(self) -> None:
        """
        Call when the location source changes (e.g. simulated → live).
        Smoothing and speed history from the old source are discarded.
        """
        self._stabilizer.reset()
        self._speeds.reset()
        if self._status == NavigationStatus.LOCATION_LOST and self._tracker is not None:
            self._status = NavigationStatus.NAVIGATING
        logger.info("Location source switched.")

    def location_lost(self, reason: str, now: Optional[float] = None) -> NavEvent:
        """
        The location source is gone (permission denied, hardware failure).
        Tracking goes idle until switch_source() or a new navigation start.
        """
        logger.error(f"Location unavailable: {reason}")
        self._stabilizer.reset()
        self._status = NavigationStatus.LOCATION_LOST
        event = NavEvent(
            EventType.LOCATION_UNAVAILABLE,
            now if now is not None else self._last_time,
            {"reason": reason},
        )
        self._emit([event])
        return event

    # ------------------------------------------------------------------
    # Fix update: call this on every raw fix
    # ------------------------------------------------------------------

    def handle_fix(self, fix: Fix) -> NavigationUpdate:
        """
        Process one raw fix.

        Args:
            fix: Raw reading from the location source.

        Returns:
            NavigationUpdate; position/progress are None when the fix was dropped.
        """
        if self._status not in ACTIVE_STATUSES or self._tracker is None:
            return NavigationUpdate(status=self._status)

        position = self._stabilizer.accept(fix)
        if position is None:
            return NavigationUpdate(status=self._status)

        now = position.timestamp
        coord = position.coord
        self._last_position = coord
        self._last_time = now
        self._speeds.add_position(coord, now)

        progress, events = self._tracker.update_with_events(coord, now)
        if progress.is_complete:
            self._status = NavigationStatus.ARRIVED

        reroute_needed = False
        if self._status == NavigationStatus.NAVIGATING:
            decision = self._engine.check(coord, progress.distance_to_route, now)
            if decision.should_reroute:
                reroute_needed = True
                events.append(NavEvent(
                    EventType.REROUTE_REQUESTED, now,
                    {"reason": decision.reason, "distance": decision.distance},
                ))
            elif decision.can_continue_on_route:
                logger.debug("Reroute attempts exhausted; continuing on current route.")

        engine_state = self._engine.state
        progress.off_route_since = engine_state.off_route_since
        progress.reroute_attempts = engine_state.reroute_attempts
        progress.last_reroute_time = engine_state.last_reroute_time

        eta = self._eta.estimate(progress.distance_remaining, self._speeds, now)

        self._emit(events)
        if self._sink:
            self._sink.log_progress(progress, coord, now)

        return NavigationUpdate(
            status=self._status,
            position=position,
            progress=progress,
            eta=eta,
            events=events,
            reroute_needed=reroute_needed,
        )

    # ------------------------------------------------------------------
    # Rerouting
    # ------------------------------------------------------------------

    async def reroute(self, origin: Optional[Coord] = None) -> bool:
        """
        Ask the routing provider for a new route to the original destination.

        Fixes may keep arriving while this is awaited; they are tracked
        against the old route. Only one request is allowed at a time.

        Returns:
            True when a new route is active.
        """
        if self._reroute_in_flight:
            logger.warning("Reroute already in progress; request ignored.")
            return False
        if self._tracker is None or self._destination is None or not self.is_active:
            logger.warning("Reroute requested without an active route.")
            return False
        origin = origin or self._last_position
        if origin is None:
            logger.warning("Reroute requested before any position was accepted.")
            return False

        generation = self._generation
        self._reroute_in_flight = True
        self._status = NavigationStatus.REROUTING
        try:
            route = await self._provider.request_route(origin, self._destination, self.config.profile)
        except RoutingError as e:
            logger.warning(f"Reroute failed, continuing on existing route: {e}")
            return self._reroute_failed(generation, str(e))
        except Exception as e:
            logger.exception(f"Routing provider crashed, continuing on existing route: {e}")
            return self._reroute_failed(generation, f"{type(e).__name__}: {e}")
        finally:
            if generation == self._generation:
                self._reroute_in_flight = False

        if generation != self._generation or self._tracker is None:
            logger.info("Navigation restarted while rerouting; result dropped.")
            return False
        if self._status == NavigationStatus.ARRIVED:
            return False

        self._tracker.reset(route)
        self._engine.reroute_succeeded()
        self._set_status_after_reroute()
        self._emit([NavEvent(
            EventType.REROUTE_SUCCEEDED, self._last_time,
            {"points": len(route.polyline), "distance": route.total_distance},
        )])
        logger.info(f"Reroute succeeded: {len(route.instructions)} steps.")
        return True

    async def follow(self, source: LocationSource) -> Optional[NavigationUpdate]:
        """
        Drive the session from a location source until it ends or arrival.

        Reroutes run as background tasks so fixes keep flowing meanwhile.

        Returns:
            The last update that carried a position, if any.
        """
        last: Optional[NavigationUpdate] = None
        pending: List[asyncio.Task] = []
        try:
            for fix in source.fixes():
                update = self.handle_fix(fix)
                if update.position is not None:
                    last = update
                if update.reroute_needed:
                    pending.append(asyncio.create_task(self.reroute()))
                if update.status == NavigationStatus.ARRIVED:
                    break
                await asyncio.sleep(0)
        except LocationUnavailableError as e:
            self.location_lost(str(e))
        finally:
            if pending:
                await asyncio.gather(*pending)
        return last

    # ------------------------------------------------------------------
    # Convenience read-only properties
    # ------------------------------------------------------------------

    @property
    def status(self) -> NavigationStatus:
        return self._status

    @property
    def tracker(self) -> Optional[RouteProgressTracker]:
        return self._tracker

    @property
    def reroute_in_flight(self) -> bool:
        return self._reroute_in_flight

    @property
    def is_active(self) -> bool:
        return self._status in ACTIVE_STATUSES

    def get_stats(self) -> dict:
        stats = {"status": self._status.value, "speed": self._speeds.stats()}
        if self._engine is not None:
            stats["reroute"] = self._engine.get_stats(self._last_time)
        return stats

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _reroute_failed(self, generation: int, reason: str) -> bool:
        if generation != self._generation:
            return False
        if self._engine is not None:
            self._engine.reroute_failed()
        self._set_status_after_reroute()
        self._emit([NavEvent(
            EventType.REROUTE_FAILED, self._last_time,
            {"reason": reason, "continue_on_route": True},
        )])
        return False

    def _set_status_after_reroute(self) -> None:
        if self._status == NavigationStatus.REROUTING:
            self._status = NavigationStatus.NAVIGATING

    def _emit(self, events: List[NavEvent]) -> None:
        for event in events:
            if self._sink:
                self._sink.log_event(event)
            if self._on_event:
                self._on_event(event)
