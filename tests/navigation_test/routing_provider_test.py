"""
Routing Provider Tests
======================

Response parsing, the HTTP adapter against a local aiohttp server,
and the static provider used for simulation.
"""

from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from navigation.guidance.errors import RoutingError
from navigation.guidance.models import Coord
from navigation.guidance.nav_config import TravelProfile
from navigation.guidance.routing_provider import (
    HttpRoutingProvider,
    StaticRoutingProvider,
    parse_distance,
    parse_duration,
    parse_route_response,
)

ORIGIN = Coord(51.5898, 3.7218)
DESTINATION = Coord(51.5908, 3.7240)

ROUTE_PAYLOAD = {
    "geometry": [[3.7218, 51.5898], [3.7218, 51.5908], [3.7240, 51.5908]],
    "instructions": [
        {"instruction": "Head north", "distance": "111 m", "duration": "1 min", "maneuverType": "straight"},
        {"instruction": "Turn right", "distance": "0.15 km", "duration": "2 min", "maneuverType": "turn-right"},
        {"instruction": "Arrive", "distance": 0, "duration": 0},
    ],
    "totalDistance": "0.26 km",
    "durationSeconds": 188,
}


@asynccontextmanager
async def route_server(handler):
    app = web.Application()
    app.router.add_post("/api/route", handler)
    async with TestServer(app) as server:
        yield str(server.make_url("/"))


class TestParsing:

    @pytest.mark.parametrize("value, metres", [
        ("120 m", 120.0),
        ("1.2 km", 1200.0),
        ("0,5 km", 500.0),
        (75, 75.0),
    ])
    def test_parse_distance(self, value, metres):
        assert parse_distance(value) == pytest.approx(metres)

    @pytest.mark.parametrize("value, seconds", [
        ("5 min", 300.0),
        ("1h 5min", 3900.0),
        ("2 h", 7200.0),
        (42, 42.0),
    ])
    def test_parse_duration(self, value, seconds):
        assert parse_duration(value) == seconds

    def test_bad_values(self):
        with pytest.raises(ValueError):
            parse_distance("far")
        with pytest.raises(ValueError):
            parse_duration("soon")

    def test_full_response(self):
        route = parse_route_response(ROUTE_PAYLOAD)

        assert route.polyline[0] == Coord(51.5898, 3.7218)
        assert route.destination == Coord(51.5908, 3.7240)
        assert [i.maneuver for i in route.instructions] == ["straight", "turn-right", "straight"]
        assert route.instructions[1].distance == pytest.approx(150.0)
        assert route.total_distance == pytest.approx(260.0)
        assert route.total_duration == 188.0

    def test_encoded_polyline(self):
        route = parse_route_response({"polyline": "_p~iF~ps|U_ulLnnqC", "estimatedTime": "3 min"})

        assert len(route.polyline) == 2
        assert route.total_duration == 180.0
        assert route.total_distance > 0

    @pytest.mark.parametrize("payload", [
        {},
        {"geometry": [[3.7, 51.5]]},
        {"geometry": [["x", 51.5], [3.7, 51.6]]},
        {"geometry": [[3.7, 51.5], [3.8, 51.6]], "instructions": [{"distance": "a lot"}]},
        {"geometry": [[3.7, 51.5], [3.8, 51.6]], "instructions": ["turn left"]},
        [[3.7, 51.5], [3.8, 51.6]],
        "no route",
    ])
    def test_malformed_response(self, payload):
        with pytest.raises(RoutingError):
            parse_route_response(payload)


class TestHttpRoutingProvider:

    @pytest.mark.asyncio
    async def test_request_route(self):
        received = []

        async def handler(request):
            received.append(await request.json())
            return web.json_response(ROUTE_PAYLOAD)

        async with route_server(handler) as url:
            provider = HttpRoutingProvider(url)
            route = await provider.request_route(ORIGIN, DESTINATION, TravelProfile.CYCLING)

        assert len(route.polyline) == 3
        assert received == [{
            "from": {"lat": 51.5898, "lng": 3.7218},
            "to": {"lat": 51.5908, "lng": 3.7240},
            "profile": "cycling",
        }]

    @pytest.mark.asyncio
    async def test_server_error(self):
        async def handler(request):
            return web.json_response({"error": "no route"}, status=500)

        async with route_server(handler) as url:
            with pytest.raises(RoutingError, match="500"):
                await HttpRoutingProvider(url).request_route(ORIGIN, DESTINATION, TravelProfile.WALKING)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async def handler(request):
            return web.Response(text="not json", content_type="application/json")

        async with route_server(handler) as url:
            with pytest.raises(RoutingError):
                await HttpRoutingProvider(url).request_route(ORIGIN, DESTINATION, TravelProfile.WALKING)

    @pytest.mark.asyncio
    async def test_unreachable_server(self):
        provider = HttpRoutingProvider("http://127.0.0.1:9", timeout=2.0)
        with pytest.raises(RoutingError):
            await provider.request_route(ORIGIN, DESTINATION, TravelProfile.WALKING)

    def test_base_url_required(self):
        with pytest.raises(ValueError):
            HttpRoutingProvider("")


class TestStaticRoutingProvider:

    @pytest.mark.asyncio
    async def test_serves_in_order(self, l_route):
        provider = StaticRoutingProvider([l_route, RoutingError("offline")])

        assert await provider.request_route(ORIGIN, DESTINATION, TravelProfile.WALKING) is l_route
        with pytest.raises(RoutingError, match="offline"):
            await provider.request_route(ORIGIN, DESTINATION, TravelProfile.WALKING)
        with pytest.raises(RoutingError, match="No route available"):
            await provider.request_route(ORIGIN, DESTINATION, TravelProfile.WALKING)

        assert len(provider.requests) == 3
        assert provider.requests[0] == (ORIGIN, DESTINATION, TravelProfile.WALKING)
