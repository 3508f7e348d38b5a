# geo_utils.py
# Pure mathematical / geographic helper functions.
# No side effects; only depends on the shared models.

import math
from typing import List, Sequence, Tuple

from .models import Coord


EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in metres.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Distance in metres.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_between(a: Coord, b: Coord) -> float:
    """haversine_distance() for two Coord objects."""
    return haversine_distance(a.lat, a.lon, b.lat, b.lon)


def interpolate(a: Coord, b: Coord, fraction: float) -> Coord:
    """Linear interpolation between two nearby coordinates."""
    return Coord(
        a.lat + (b.lat - a.lat) * fraction,
        a.lon + (b.lon - a.lon) * fraction,
    )


def project_onto_segment(point: Coord, start: Coord, end: Coord) -> Tuple[Coord, float]:
    """
    Closest point on the segment start→end to `point`.

    Works in a local equirectangular frame centred on the segment, which is
    accurate at the scale of a single route segment.

    Args:
        point: Position to project.
        start: Segment start.
        end:   Segment end.

    Returns:
        (projected point, parametric t in [0, 1])
    """
    cos_lat = math.cos(math.radians((start.lat + end.lat) / 2))
    dx = (end.lon - start.lon) * cos_lat
    dy = end.lat - start.lat
    len_sq = dx * dx + dy * dy

    # Zero-length segment: nothing to project onto
    if len_sq == 0:
        return start, 0.0

    px = (point.lon - start.lon) * cos_lat
    py = point.lat - start.lat
    t = (px * dx + py * dy) / len_sq
    t = max(0.0, min(1.0, t))
    return interpolate(start, end, t), t


def segment_lengths(polyline: Sequence[Coord]) -> List[float]:
    """Length in metres of every consecutive segment of a polyline."""
    return [distance_between(polyline[i], polyline[i + 1]) for i in range(len(polyline) - 1)]


def decode_polyline(encoded: str, precision: int = 5) -> List[Coord]:
    """
    Decode a Google encoded polyline string.

    Args:
        encoded:   The encoded polyline.
        precision: Number of decimal places encoded (5 for Google, 6 for OSRM polyline6).

    Returns:
        List of Coord in order.
    """
    coords: List[Coord] = []
    index = lat = lon = 0
    factor = 10 ** precision

    while index < len(encoded):
        deltas = []
        for _ in range(2):
            shift = result = 0
            while True:
                byte = ord(encoded[index]) - 63
                index += 1
                result |= (byte & 0x1F) << shift
                shift += 5
                if byte < 0x20:
                    break
            deltas.append(~(result >> 1) if result & 1 else result >> 1)
        lat += deltas[0]
        lon += deltas[1]
        coords.append(Coord(lat / factor, lon / factor))

    return coords
