# routing_provider.py
# Adapter for the external routing service.
# Sole responsibility: ask for a route and normalize the answer into a Route.

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from .errors import RoutingError
from .geo_utils import decode_polyline, segment_lengths
from .models import Coord, Instruction, Route
from .nav_config import TravelProfile

logger = logging.getLogger(__name__)

_DISTANCE_RE = re.compile(r"([\d.,]+)\s*(km|m)\b", re.IGNORECASE)
_HOURS_RE = re.compile(r"(\d+)\s*h", re.IGNORECASE)
_MINUTES_RE = re.compile(r"(\d+)\s*min", re.IGNORECASE)


class RoutingProvider(ABC):
    """Anything that can compute a route asynchronously."""

    @abstractmethod
    async def request_route(
        self, origin: Coord, destination: Coord, profile: TravelProfile
    ) -> Route:
        """Raises RoutingError when no route can be produced."""


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def parse_distance(value: Any) -> float:
    """'120 m' / '1.2 km' / 120 → metres."""
    if isinstance(value, (int, float)):
        return float(value)
    match = _DISTANCE_RE.search(str(value))
    if not match:
        raise ValueError(f"Unrecognized distance: {value!r}")
    number = float(match.group(1).replace(",", "."))
    return number * 1000 if match.group(2).lower() == "km" else number


def parse_duration(value: Any) -> float:
    """'5 min' / '1h 5min' / 300 → seconds."""
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value)
    hours = _HOURS_RE.search(text)
    minutes = _MINUTES_RE.search(text)
    if not hours and not minutes:
        raise ValueError(f"Unrecognized duration: {value!r}")
    return (int(hours.group(1)) if hours else 0) * 3600 + (int(minutes.group(1)) if minutes else 0) * 60


def _parse_geometry(data: Dict[str, Any]) -> List[Coord]:
    if data.get("geometry"):
        # [lng, lat] pairs, GeoJSON order
        return [Coord(float(p[1]), float(p[0])) for p in data["geometry"]]
    if data.get("polyline"):
        return decode_polyline(data["polyline"])
    return []


def parse_route_response(data: Dict[str, Any]) -> Route:
    """
    Normalize the routing service's JSON into a Route.

    Raises:
        RoutingError: If the payload has no usable geometry or malformed fields.
    """
    if not isinstance(data, dict):
        raise RoutingError(f"Malformed route response: expected an object, got {type(data).__name__}")
    try:
        polyline = _parse_geometry(data)
        instructions = [
            Instruction(
                text=step.get("instruction", ""),
                distance=parse_distance(step.get("distance", 0)),
                duration=parse_duration(step.get("duration", 0)),
                maneuver=step.get("maneuverType") or "straight",
            )
            for step in data.get("instructions", [])
        ]
        if "totalDistance" in data:
            total_distance = parse_distance(data["totalDistance"])
        else:
            total_distance = sum(segment_lengths(polyline))
        if "durationSeconds" in data:
            total_duration = float(data["durationSeconds"])
        else:
            total_duration = parse_duration(data.get("estimatedTime", 0))
        return Route.build(polyline, instructions, total_distance, total_duration)
    except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
        raise RoutingError(f"Malformed route response: {e}") from e


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------

class HttpRoutingProvider(RoutingProvider):
    """
    Talks to the backend route proxy (POST /api/route).

    Args:
        base_url: Server root, e.g. "http://localhost:5000".
        timeout:  Seconds to wait for an answer before giving up.
        session:  Optional shared aiohttp session; one is opened per call otherwise.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        if not base_url:
            raise ValueError("Routing base URL is required.")
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session

    async def request_route(
        self, origin: Coord, destination: Coord, profile: TravelProfile
    ) -> Route:
        url = f"{self.base_url}/api/route"
        payload = {
            "from": {"lat": origin.lat, "lng": origin.lon},
            "to": {"lat": destination.lat, "lng": destination.lon},
            "profile": profile.value,
        }
        logger.info(f"Requesting route {origin} → {destination} ({profile.value})")

        try:
            if self._session is not None:
                data = await self._post(self._session, url, payload)
            else:
                async with aiohttp.ClientSession(timeout=self.timeout) as session:
                    data = await self._post(session, url, payload)
        except aiohttp.ClientError as e:
            raise RoutingError(f"Routing request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise RoutingError("Routing request timed out") from e
        except ValueError as e:
            raise RoutingError(f"Routing service sent invalid JSON: {e}") from e

        route = parse_route_response(data)
        logger.info(f"Route received: {len(route.polyline)} points, "
                    f"{len(route.instructions)} steps, {route.total_distance:.0f} m")
        return route

    async def _post(self, session: aiohttp.ClientSession, url: str, payload: dict) -> Dict[str, Any]:
        async with session.post(url, json=payload, timeout=self.timeout) as response:
            if response.status != 200:
                text = await response.text()
                raise RoutingError(f"Routing service returned {response.status}: {text[:200]}")
            return await response.json()


class StaticRoutingProvider(RoutingProvider):
    """
    Serves pre-built routes in order, or raises a queued error.

    Used for simulation and tests.
    """

    def __init__(self, routes: Sequence[Any] = ()) -> None:
        self._queue: List[Any] = list(routes)
        self.requests: List[tuple] = []

    def add(self, route_or_error: Any) -> None:
        self._queue.append(route_or_error)

    async def request_route(
        self, origin: Coord, destination: Coord, profile: TravelProfile
    ) -> Route:
        self.requests.append((origin, destination, profile))
        if not self._queue:
            raise RoutingError("No route available.")
        item = self._queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item
