import math

import pytest

from navigation.guidance.geo_utils import EARTH_RADIUS_M
from navigation.guidance.models import Coord, Instruction, Route

BASE = Coord(51.5898, 3.7218)    # Kamperland campground entrance


def move(coord: Coord, north_m: float = 0.0, east_m: float = 0.0) -> Coord:
    """Shift a coordinate by metres north/east."""
    d_lat = math.degrees(north_m / EARTH_RADIUS_M)
    d_lon = math.degrees(east_m / (EARTH_RADIUS_M * math.cos(math.radians(coord.lat))))
    return Coord(coord.lat + d_lat, coord.lon + d_lon)


@pytest.fixture
def offset():
    return move


@pytest.fixture
def base():
    return BASE


@pytest.fixture
def l_route():
    """200 m north, then 200 m east, three instructions."""
    corner = move(BASE, north_m=200)
    end = move(corner, east_m=200)
    return Route.build(
        polyline=[BASE, corner, end],
        instructions=[
            Instruction("Head north", 200, 144, "straight"),
            Instruction("Turn right", 200, 144, "turn-right"),
            Instruction("Arrive", 0, 0, "arrive"),
        ],
        total_distance=400,
        total_duration=288,
    )
