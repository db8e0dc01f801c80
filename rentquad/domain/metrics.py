"""
Ride Metrics Simulator
======================

Stands in for a live telemetry feed: while a ride is running it ticks on a
fixed interval and derives duration, distance and cost from the wall-clock
time elapsed since the ride started.

    t              = floor(now - started_at)
    distance_km    = round2(t x km_per_second)
    estimated_cost = max(minimum_fare, round2(distance_km x rate + minimum_fare))

A real GPS/telemetry stream would replace ``_tick`` and keep the rest.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Optional

from .entities import RideStats
from .pricing import FareEstimator

logger = logging.getLogger(__name__)


class RideMetricsSimulator:
    def __init__(
        self,
        timers: Any,
        on_update: Callable[[RideStats], None],
        fares: FareEstimator | None = None,
        interval_ms: int = 1000,
    ):
        self._timers = timers
        self._on_update = on_update
        self._fares = fares or FareEstimator()
        self._interval_ms = interval_ms
        self._handle: Any = None
        self._started_at: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> bool:
        """Begin ticking.  Returns False (and does nothing) if already running."""
        if self.running:
            return False
        self._started_at = self._timers.now()
        # unlock fee applies from the first instant of the ride
        self._on_update(self.compute(0))
        self._handle = self._timers.schedule_repeating(self._tick, self._interval_ms)
        logger.debug("Ride metrics started")
        return True

    def stop(self) -> None:
        if self._handle is not None:
            self._timers.cancel_repeating(self._handle)
            self._handle = None
            logger.debug("Ride metrics stopped")
        self._started_at = None

    def compute(self, elapsed: float) -> RideStats:
        # millisecond rounding keeps float clock drift from dropping a second
        seconds = max(0, math.floor(round(elapsed, 3)))
        distance = self._fares.distance_for(seconds)
        return RideStats(
            duration_seconds=seconds,
            distance_km=distance,
            estimated_cost=self._fares.estimate(distance),
        )

    def _tick(self) -> None:
        if self._started_at is None:
            return
        self._on_update(self.compute(self._timers.now() - self._started_at))
