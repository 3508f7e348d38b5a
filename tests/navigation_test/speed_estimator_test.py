import pytest

from navigation.guidance.nav_config import SpeedConfig
from navigation.guidance.speed_estimator import SpeedEstimator


@pytest.fixture
def speeds():
    return SpeedEstimator(SpeedConfig())


def walk(speeds, start, offset, metres_per_step, seconds_per_step, steps):
    for i in range(steps):
        speeds.add_position(offset(start, north_m=metres_per_step * i), seconds_per_step * i)


class TestSpeedEstimator:
    """Speeds from a stream of accepted positions."""

    def test_no_speed_until_two_samples(self, speeds, base):
        assert speeds.current_speed() == 0.0
        speeds.add_position(base, 0.0)
        assert speeds.current_speed() == 0.0
        assert speeds.average_speed() == 0.0
        assert not speeds.is_moving()

    def test_jitter_is_ignored(self, speeds, base, offset):
        assert speeds.add_position(base, 0.0)
        assert not speeds.add_position(offset(base, north_m=0.5), 5.0)
        assert speeds.total_distance == 0.0
        assert speeds.stats()["samples"] == 1

    def test_constant_walk(self, speeds, base, offset):
        """7 m every 5 s ≈ 5 km/h."""
        walk(speeds, base, offset, 7.0, 5.0, 10)

        assert speeds.current_speed() == pytest.approx(5.04, abs=0.05)
        assert speeds.average_speed() == pytest.approx(5.04, abs=0.05)
        assert speeds.total_distance == pytest.approx(63.0, abs=0.1)
        assert speeds.is_moving()

    def test_current_speed_uses_recent_samples(self, speeds, base, offset):
        """A stop after walking drops current speed, not the session average."""
        walk(speeds, base, offset, 7.0, 5.0, 6)
        end = offset(base, north_m=35.0)
        # Creep 1.5 m per 30 s: above the noise floor, barely moving
        for i in range(1, 6):
            speeds.add_position(offset(end, north_m=1.5 * i), 25.0 + 30.0 * i)

        assert speeds.current_speed() < 0.5
        assert speeds.average_speed() > speeds.current_speed()
        assert not speeds.is_moving()

    def test_spikes_are_capped(self, speeds, base, offset):
        speeds.add_position(base, 0.0)
        speeds.add_position(offset(base, north_m=100.0), 1.0)

        assert speeds.current_speed() == 50.0
        assert speeds.max_speed == 50.0

    def test_max_speed_is_kept(self, speeds, base, offset):
        speeds.add_position(base, 0.0)
        speeds.add_position(offset(base, north_m=10.0), 5.0)       # 7.2 km/h
        speeds.add_position(offset(base, north_m=12.0), 15.0)

        assert speeds.max_speed == pytest.approx(7.2, abs=0.05)
        assert speeds.current_speed() < speeds.max_speed

    def test_is_stationary(self, speeds, base, offset):
        walk(speeds, base, offset, 7.0, 5.0, 3)

        assert not speeds.is_stationary(now=60.0)
        assert speeds.is_stationary(now=400.0)
        assert not speeds.is_stationary(now=400.0, threshold_s=600.0)

    def test_stationary_despite_last_known_speed(self, speeds, base, offset):
        walk(speeds, base, offset, 7.0, 5.0, 3)
        # Standing still only produces jitter, so the last speed is kept
        assert not speeds.add_position(offset(base, north_m=14.3), 900.0)

        assert speeds.is_moving()
        assert speeds.is_stationary(now=900.0)

    def test_stats_and_reset(self, speeds, base, offset):
        walk(speeds, base, offset, 7.0, 5.0, 4)
        stats = speeds.stats()
        assert stats["samples"] == 4
        assert stats["moving"] is True
        assert set(stats) == {
            "samples", "total_distance_m", "current_speed_kmh",
            "average_speed_kmh", "max_speed_kmh", "moving",
        }

        speeds.reset()
        assert speeds.stats()["samples"] == 0
        assert speeds.total_distance == 0.0
        assert speeds.max_speed == 0.0
