# reroute_engine.py
# State machine deciding when an off-route user needs a fresh route.
# evaluate() is the pure transition function; RerouteDecisionEngine wraps it.

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from .geo_utils import distance_between
from .models import Coord
from .nav_config import GENERAL_POLICY, ReroutePolicy

logger = logging.getLogger(__name__)


class RerouteState(Enum):
    ON_ROUTE          = "on_route"
    OFF_ROUTE_PENDING = "off_route_pending"
    REROUTE_TRIGGERED = "reroute_triggered"


@dataclass(frozen=True)
class EngineState:
    phase: RerouteState = RerouteState.ON_ROUTE
    off_route_since: Optional[float] = None
    reroute_attempts: int = 0
    last_reroute_time: Optional[float] = None
    last_position: Optional[Coord] = None


@dataclass(frozen=True)
class RerouteDecision:
    should_reroute: bool
    reason: str
    distance: Optional[float] = None
    can_continue_on_route: bool = False    # attempts exhausted, keep the old route


def _cooldown_elapsed(state: EngineState, now: float, policy: ReroutePolicy) -> bool:
    if state.last_reroute_time is None:
        return True
    return now - state.last_reroute_time > policy.cooldown_s


def _trigger(state: EngineState, now: float) -> EngineState:
    return replace(
        state,
        phase=RerouteState.REROUTE_TRIGGERED,
        reroute_attempts=state.reroute_attempts + 1,
        last_reroute_time=now,
        off_route_since=None,
    )


def evaluate(
    state: EngineState,
    position: Coord,
    distance_to_route: float,
    now: float,
    policy: ReroutePolicy = GENERAL_POLICY,
) -> Tuple[EngineState, RerouteDecision]:
    """
    One transition of the reroute state machine.

    Args:
        state:             Engine state before this update.
        position:          Current position.
        distance_to_route: Perpendicular distance to the active route (m).
        now:               Current time in seconds, same clock as the fixes.
        policy:            Thresholds, consideration time, cooldown and attempt limit.

    Returns:
        (new state, decision)
    """
    if state.phase == RerouteState.REROUTE_TRIGGERED:
        return state, RerouteDecision(False, "Reroute in progress", distance_to_route)

    # Back on route clears the timer regardless of how far the user moved
    if distance_to_route <= policy.off_route_threshold_m:
        if state.phase == RerouteState.OFF_ROUTE_PENDING:
            logger.info("Back on route.")
        state = replace(
            state, phase=RerouteState.ON_ROUTE, off_route_since=None, last_position=position
        )
        return state, RerouteDecision(False, "On route", distance_to_route)

    # Minimum-movement filter
    if state.last_position is not None:
        moved = distance_between(state.last_position, position)
        if moved < policy.minimum_movement_m:
            return state, RerouteDecision(False, "Insufficient movement")

    state = replace(state, last_position=position)

    if state.phase == RerouteState.ON_ROUTE:
        logger.info(f"Off route by {distance_to_route:.1f} m, starting timer.")
        state = replace(state, phase=RerouteState.OFF_ROUTE_PENDING, off_route_since=now)
        return state, RerouteDecision(False, "Started off-route timer", distance_to_route)

    off_route_for = now - state.off_route_since
    attempts_left = state.reroute_attempts < policy.max_reroute_attempts
    cooldown_ok = _cooldown_elapsed(state, now, policy)

    # Emergency path skips the consideration time
    if distance_to_route > policy.auto_reroute_threshold_m and attempts_left and cooldown_ok:
        logger.warning(f"Emergency reroute: {distance_to_route:.1f} m off route.")
        return _trigger(state, now), RerouteDecision(
            True, f"Emergency reroute: {distance_to_route:.1f}m off-route", distance_to_route
        )

    if off_route_for > policy.consideration_time_s:
        if not attempts_left:
            return state, RerouteDecision(
                False, "Max reroute attempts reached", distance_to_route,
                can_continue_on_route=True,
            )
        if cooldown_ok:
            logger.info(f"Reroute after {off_route_for:.1f}s off route.")
            return _trigger(state, now), RerouteDecision(
                True, f"Off-route for {off_route_for:.1f}s", distance_to_route
            )
        return state, RerouteDecision(False, "Reroute cooldown", distance_to_route)

    return state, RerouteDecision(False, "Waiting for consideration time", distance_to_route)


class RerouteDecisionEngine:
    """
    Owns the reroute state for one navigation session.

    The caller performs the actual routing request when check() says so and
    reports the outcome with reroute_succeeded() / reroute_failed().
    """

    def __init__(self, policy: ReroutePolicy = GENERAL_POLICY) -> None:
        self.policy = policy
        self._state = EngineState()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def phase(self) -> RerouteState:
        return self._state.phase

    @property
    def attempts_exhausted(self) -> bool:
        return self._state.reroute_attempts >= self.policy.max_reroute_attempts

    def check(self, position: Coord, distance_to_route: float, now: float) -> RerouteDecision:
        self._state, decision = evaluate(self._state, position, distance_to_route, now, self.policy)
        return decision

    def reroute_succeeded(self) -> None:
        """New route is active; start watching it from a clean slate."""
        self._state = replace(
            self._state, phase=RerouteState.ON_ROUTE, off_route_since=None, last_position=None
        )

    def reroute_failed(self) -> None:
        """
        The routing request failed. The attempt counted at trigger time stays
        consumed; the engine goes back to watching the existing route.
        """
        self._state = replace(self._state, phase=RerouteState.ON_ROUTE, off_route_since=None)

    def get_stats(self, now: float) -> dict:
        since = self._state.off_route_since
        return {
            "state": self._state.phase.value,
            "reroute_attempts": self._state.reroute_attempts,
            "max_attempts": self.policy.max_reroute_attempts,
            "is_off_route": since is not None,
            "off_route_duration": now - since if since is not None else None,
        }

    def reset(self) -> None:
        self._state = EngineState()
        logger.info(f"Reroute engine reset ({self.policy.name} policy).")
