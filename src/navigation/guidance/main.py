# main.py
# Entry point: simulates a walk feeding fixes into NavigationSession.
# In production, replace SimulatedWalkSource with the device's location feed
# and StaticRoutingProvider with HttpRoutingProvider(<server url>).

import asyncio
import logging

from .models import Coord, EventType, Instruction, NavEvent, Route
from .nav_config import NavConfig, SiteType, TravelProfile
from .nav_logger import NavLogger
from .location_source import SimulatedWalkSource
from .navigator import NavigationSession
from .routing_provider import StaticRoutingProvider

# ------------------------------------------------------------------
# Logging setup: configure once here, all modules inherit
# ------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

# ------------------------------------------------------------------
# Config: tweak thresholds or paths here, not inside the modules
# ------------------------------------------------------------------
config = NavConfig.for_profile(
    TravelProfile.WALKING,
    site=SiteType.CAMPGROUND,
    log_dir="logs",
)

# ------------------------------------------------------------------
# Simulation coordinates (campground, Kamperland)
# ------------------------------------------------------------------
ENTRANCE    = Coord(51.58980, 3.72183)
CORNER      = Coord(51.59080, 3.72183)
DESTINATION = Coord(51.59080, 3.72400)
WRONG_TURN  = Coord(51.59000, 3.72183)     # user turns west here
DETOUR      = Coord(51.59000, 3.72000)     # ~130 m west of the path

PLANNED_ROUTE = Route.build(
    polyline=[ENTRANCE, CORNER, DESTINATION],
    instructions=[
        Instruction("Head north on the main lane", 111, 80, "straight"),
        Instruction("Turn right towards the beach houses", 150, 108, "turn-right"),
        Instruction("You have reached your destination", 0, 0, "arrive"),
    ],
    total_distance=261,
    total_duration=188,
)

REROUTED = Route.build(
    polyline=[WRONG_TURN, DETOUR, Coord(51.59080, 3.72000), DESTINATION],
    instructions=[
        Instruction("Head west", 127, 91, "straight"),
        Instruction("Turn right", 89, 64, "turn-right"),
        Instruction("Turn right towards the beach houses", 277, 199, "turn-right"),
        Instruction("You have reached your destination", 0, 0, "arrive"),
    ],
    total_distance=493,
    total_duration=354,
)


def print_event(event: NavEvent) -> None:
    if event.type != EventType.OFF_ROUTE:
        print(f"  ► {event.type.value} {event.data or ''}")


async def main() -> None:
    # 1. Boot session with a provider that knows the planned and the rerouted route
    provider = StaticRoutingProvider([PLANNED_ROUTE, REROUTED])
    session = NavigationSession(
        provider, config=config, event_sink=NavLogger(config), on_event=print_event
    )

    # 2. Request a route
    success, msg = await session.start_navigation(ENTRANCE, DESTINATION)
    if not success:
        print(f"[Main] Could not start navigation: {msg}")
        return

    print("\n--- GPS Loop Active ---")

    # 3. Walk part of the way, take a wrong turn, then follow the new route
    walk = SimulatedWalkSource(
        [ENTRANCE, WRONG_TURN, DETOUR, Coord(51.59080, 3.72000), DESTINATION],
        speed_kmh=5.0,
        interval_s=config.stabilizer.min_update_interval_s,
        accuracy_m=6.0,
        jitter_m=1.5,
        seed=7,
    )
    last = await session.follow(walk)

    print("\n--- Session complete ---")
    if last is not None and last.progress is not None:
        print(f"    Status: {last.status.value}, {last.progress.percent_complete:.0f}% complete")
    print(f"    Stats: {session.get_stats()}")
    print(f"    Log file written to: {config.session_filepath}")


if __name__ == "__main__":
    asyncio.run(main())
