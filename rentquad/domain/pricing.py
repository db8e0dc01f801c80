"""
Ride Fare Estimation  (Strategy Pattern)
========================================

Formula
-------
Fare = max(Minimum_Fare, round2(Base_Fare + Distance x Rate_Per_KM))

The base fare doubles as the minimum fare: unlocking a vehicle costs
``minimum_fare`` even if it never moves.

Complexity: O(1) per estimate.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


def round2(value: float) -> float:
    return round(value, 2)


# ── Strategy hierarchy ────────────────────────────────────────────────


class FareStrategy(ABC):
    @abstractmethod
    def calculate(self, distance_km: float) -> float: ...


class DistanceFare(FareStrategy):
    """Unlock fee plus a per-km rate."""

    def __init__(self, base_fare: float = 29.0, rate_per_km: float = 4.2):
        self.base_fare = base_fare
        self.rate_per_km = rate_per_km

    def calculate(self, distance_km: float) -> float:
        return round2(distance_km * self.rate_per_km + self.base_fare)


class MinimumFare(FareStrategy):
    """Wraps another strategy and never quotes below ``minimum``."""

    def __init__(self, inner: FareStrategy, minimum: float = 29.0):
        self.inner = inner
        self.minimum = minimum

    def calculate(self, distance_km: float) -> float:
        return max(self.minimum, self.inner.calculate(distance_km))


# ── Engine facade ─────────────────────────────────────────────────────


class FareEstimator:
    """High-level API used by the ride metrics simulator."""

    def __init__(
        self,
        minimum_fare: float = 29.0,
        rate_per_km: float = 4.2,
        km_per_second: float = 0.012,
    ):
        self.km_per_second = km_per_second
        self.strategy = MinimumFare(
            DistanceFare(base_fare=minimum_fare, rate_per_km=rate_per_km),
            minimum=minimum_fare,
        )

    def distance_for(self, elapsed_seconds: int) -> float:
        return round2(elapsed_seconds * self.km_per_second)

    def estimate(self, distance_km: float) -> float:
        return self.strategy.calculate(distance_km)
