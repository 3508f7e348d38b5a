import json

import pytest

from navigation.guidance.errors import LocationUnavailableError
from navigation.guidance.geo_utils import distance_between
from navigation.guidance.location_source import (
    ReplayLocationSource,
    SimulatedWalkSource,
    save_trace,
)
from navigation.guidance.models import Coord, Fix


class TestSimulatedWalk:

    def test_exact_walk(self, l_route):
        fixes = list(SimulatedWalkSource(l_route.polyline, speed_kmh=3.6, interval_s=7.0).fixes())

        # 400 m at 7 m per fix, the last one clamped to the end point
        assert len(fixes) == 59
        assert fixes[0].coord == l_route.polyline[0]
        assert fixes[-1].coord == l_route.polyline[-1]
        assert fixes[-1].timestamp == 406.0
        assert all(f.accuracy == 5.0 for f in fixes)
        first_leg = fixes[:29]
        for prev, curr in zip(first_leg, first_leg[1:]):
            assert distance_between(prev.coord, curr.coord) == pytest.approx(7.0, abs=0.1)

    def test_jitter_is_reproducible(self, l_route):
        def run():
            walk = SimulatedWalkSource(l_route.polyline, jitter_m=3.0, seed=11)
            return [f.coord for f in walk.fixes()]

        assert run() == run()
        exact = [f.coord for f in SimulatedWalkSource(l_route.polyline).fixes()]
        assert run() != exact

    def test_start_time(self, l_route):
        walk = SimulatedWalkSource(l_route.polyline, interval_s=5.0, start_time=1000.0)
        timestamps = [f.timestamp for f in walk.fixes()][:3]
        assert timestamps == [1000.0, 1005.0, 1010.0]

    @pytest.mark.parametrize("kwargs", [{"speed_kmh": 0}, {"interval_s": -1}])
    def test_invalid_arguments(self, l_route, kwargs):
        with pytest.raises(ValueError):
            SimulatedWalkSource(l_route.polyline, **kwargs)

    def test_needs_two_points(self, base):
        with pytest.raises(ValueError):
            SimulatedWalkSource([base])


class TestReplay:

    def test_save_and_replay(self, tmp_path, base, offset):
        recorded = [
            Fix(base, 4.0, 100.0),
            None,
            Fix(offset(base, north_m=10), 6.0, 110.0),
        ]
        path = str(tmp_path / "trace.json")

        assert save_trace(recorded, path) == 3
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        assert data["trace"][1]["location"] is None
        assert data["trace"][2]["elapsed"] == 10.0

        replayed = list(ReplayLocationSource(path).fixes())
        assert replayed == [recorded[0], recorded[2]]

    def test_lng_and_elapsed_fallback(self, tmp_path):
        path = tmp_path / "trace.json"
        path.write_text(json.dumps({"trace": [
            {"elapsed": 3.0, "location": {"lat": 51.5, "lng": 3.7}},
        ]}))

        fixes = list(ReplayLocationSource(str(path)).fixes())
        assert fixes == [Fix(Coord(51.5, 3.7), 0.0, 3.0)]

    def test_too_many_failures(self, tmp_path, base):
        path = str(tmp_path / "trace.json")
        save_trace([Fix(base, 5.0, 0.0)] + [None] * 3, path)

        source = ReplayLocationSource(path, max_failures=3)
        fixes = source.fixes()
        assert next(fixes).coord == base
        with pytest.raises(LocationUnavailableError):
            next(fixes)

    def test_failures_reset_after_good_read(self, tmp_path, base):
        path = str(tmp_path / "trace.json")
        save_trace([None, None, Fix(base, 5.0, 0.0), None, None], path)

        fixes = list(ReplayLocationSource(path, max_failures=3).fixes())
        assert len(fixes) == 1
