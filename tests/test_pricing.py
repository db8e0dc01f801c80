"""Unit tests for fare estimation and the ride metrics simulator."""

import pytest

from rentquad.domain.entities import RideStats
from rentquad.domain.metrics import RideMetricsSimulator
from rentquad.domain.pricing import (
    DistanceFare,
    FareEstimator,
    MinimumFare,
    round2,
)
from rentquad.infrastructure.timers import ManualTimerFacility


class TestFareStrategies:
    def test_distance_fare(self):
        strategy = DistanceFare(base_fare=29.0, rate_per_km=4.2)
        assert strategy.calculate(10.0) == 71.0  # 29 + 10*4.2

    def test_distance_fare_rounds_to_cents(self):
        assert DistanceFare().calculate(0.01) == 29.04  # 29.042

    def test_minimum_fare_floors_inner_strategy(self):
        strategy = MinimumFare(DistanceFare(base_fare=0.0, rate_per_km=1.0), minimum=29.0)
        assert strategy.calculate(5.0) == 29.0
        assert strategy.calculate(40.0) == 40.0

    def test_round2(self):
        assert round2(1.234) == 1.23
        assert round2(2.0) == 2.0


class TestFareEstimator:
    def test_zero_distance_costs_minimum(self):
        assert FareEstimator().estimate(0.0) == 29.0

    def test_distance_for_elapsed_seconds(self):
        fares = FareEstimator()
        assert fares.distance_for(0) == 0.0
        assert fares.distance_for(100) == 1.2
        assert fares.distance_for(125) == 1.5

    def test_custom_rates(self):
        fares = FareEstimator(minimum_fare=10.0, rate_per_km=2.0, km_per_second=0.1)
        assert fares.distance_for(10) == 1.0
        assert fares.estimate(1.0) == 12.0

    @pytest.mark.parametrize("seconds", [0, 1, 59, 600, 3600])
    def test_estimate_never_below_minimum(self, seconds):
        fares = FareEstimator()
        assert fares.estimate(fares.distance_for(seconds)) >= 29.0


class TestRideMetricsSimulator:
    def _sim(self, timers, updates):
        return RideMetricsSimulator(timers, on_update=updates.append)

    def test_compute_floors_elapsed_seconds(self):
        sim = self._sim(ManualTimerFacility(), [])
        stats = sim.compute(10.9)
        assert stats.duration_seconds == 10
        assert stats.distance_km == 0.12
        assert stats.estimated_cost == 29.5  # 29 + 0.12*4.2 = 29.504

    def test_compute_negative_elapsed_is_zero(self):
        sim = self._sim(ManualTimerFacility(), [])
        assert sim.compute(-3).duration_seconds == 0

    def test_start_emits_minimum_fare_then_ticks(self):
        timers = ManualTimerFacility()
        updates = []
        sim = self._sim(timers, updates)

        assert sim.start() is True
        assert updates == [RideStats(duration_seconds=0, distance_km=0.0, estimated_cost=29.0)]

        timers.advance(3000)
        assert [u.duration_seconds for u in updates] == [0, 1, 2, 3]

    def test_start_twice_is_rejected(self):
        timers = ManualTimerFacility()
        sim = self._sim(timers, [])
        sim.start()
        assert sim.start() is False
        assert timers.pending_count == 1

    def test_stop_halts_updates(self):
        timers = ManualTimerFacility()
        updates = []
        sim = self._sim(timers, updates)
        sim.start()
        timers.advance(2000)
        sim.stop()

        timers.advance(5000)
        assert len(updates) == 3
        assert not sim.running
        assert timers.pending_count == 0

    def test_stop_when_idle_is_harmless(self):
        sim = self._sim(ManualTimerFacility(), [])
        sim.stop()
        assert not sim.running

    def test_restart_measures_from_new_start(self):
        timers = ManualTimerFacility()
        updates = []
        sim = self._sim(timers, updates)
        sim.start()
        timers.advance(5000)
        sim.stop()

        timers.advance(10_000)
        sim.start()
        timers.advance(1000)
        assert updates[-1].duration_seconds == 1
