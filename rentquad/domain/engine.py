"""
Rental Lifecycle Engine
=======================

Client-local state machine driving one rental:

    idle -> selecting -> reserving -> reserved -> scanning -> rideStarting
         -> riding -> ending -> completed -> idle

plus ``finding`` (a detour from reserved / scanning / rideStarting / riding
that returns to ``reserved`` or ``riding``) and a direct QR path that
enters at ``scanning``.

Every user operation mutates state immediately and schedules the next
step on the timer facility; timer callbacks append log entries, advance
the phase and publish vehicle status writes.  Status writes are
fire-and-forget: a failed write never blocks or rolls back a transition.

Timer bookkeeping
-----------------
One-shot timers are tracked by token.  The wrapper drops the token before
running the callback and skips the callback when the token is gone, so a
timer that fires after ``reset_flow`` / ``close`` is a no-op.

Guards
------
The engine is permissive by default: apart from "no active vehicle"
no-ops, it does not check the source phase; callers gate actions with
``Capabilities``.  With ``strict=True`` it also ignores triggers issued
from a phase not listed in ``PHASE_TRIGGERS``.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .entities import (
    ZERO_STATS,
    ActiveVehicle,
    Capabilities,
    RentalSnapshot,
    RideStats,
)
from .enums import PHASE_TRIGGERS, LogSource, Phase, Trigger, VehicleStatus
from .event_log import DEFAULT_LOG_LIMIT, EventLog
from .metrics import RideMetricsSimulator
from .pricing import FareEstimator

logger = logging.getLogger(__name__)

Listener = Callable[[RentalSnapshot], None]


@dataclass(frozen=True)
class FlowTimings:
    """Delays (ms) between automatic phase advances."""

    reserve: int = 1300
    scan: int = 1100
    ride_start: int = 1200
    find: int = 1000
    end: int = 1500
    completion_reset: int = 3000
    gps_interval: int = 4500
    metrics_interval: int = 1000

    @classmethod
    def from_settings(cls, settings: Any) -> "FlowTimings":
        return cls(
            reserve=settings.reserve_delay_ms,
            scan=settings.scan_delay_ms,
            ride_start=settings.ride_start_delay_ms,
            find=settings.find_delay_ms,
            end=settings.end_delay_ms,
            completion_reset=settings.completion_reset_delay_ms,
            gps_interval=settings.gps_interval_ms,
            metrics_interval=settings.metrics_interval_ms,
        )


class RentalEngine:
    def __init__(
        self,
        timers: Any,
        status_writer: Any,
        *,
        timings: FlowTimings | None = None,
        fares: FareEstimator | None = None,
        log_limit: int = DEFAULT_LOG_LIMIT,
        strict: bool = False,
    ):
        self._timers = timers
        self._status_writer = status_writer
        self.timings = timings or FlowTimings()
        self.strict = strict

        self._phase = Phase.IDLE
        self._vehicle: Optional[ActiveVehicle] = None
        self._log = EventLog(log_limit)
        self._stats: RideStats = ZERO_STATS
        self._phase_before_find = Phase.IDLE

        self._pending: dict[int, Any] = {}
        self._tokens = itertools.count(1)
        self._gps_handle: Any = None
        self._metrics = RideMetricsSimulator(
            timers,
            on_update=self._set_stats,
            fares=fares,
            interval_ms=self.timings.metrics_interval,
        )
        self._listeners: list[Listener] = []
        self._closed = False

    # ── Read side ─────────────────────────────────────────────────────

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def active_vehicle(self) -> Optional[ActiveVehicle]:
        return self._vehicle

    @property
    def flow_in_progress(self) -> bool:
        return self.snapshot().flow_in_progress

    @property
    def live_timer_count(self) -> int:
        """One-shot timers plus running intervals (GPS, metrics)."""
        return (
            len(self._pending)
            + (self._gps_handle is not None)
            + self._metrics.running
        )

    def snapshot(self) -> RentalSnapshot:
        return RentalSnapshot(
            phase=self._phase,
            active_vehicle=self._vehicle,
            logs=self._log.entries(),
            ride_stats=self._stats,
            capabilities=Capabilities.for_phase(self._phase),
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ── Operations ────────────────────────────────────────────────────

    def begin_rental(self, vehicle: Optional[ActiveVehicle]) -> None:
        if vehicle is None or not self._permits(Trigger.BEGIN):
            return
        self._clear_timers()
        self._stop_gps()
        self._metrics.stop()
        self._vehicle = vehicle
        self._set_phase(Phase.SELECTING)
        self._log.clear()
        self._add_log(LogSource.CLIENT, f"Rental flow started for {vehicle.title}.")
        self._add_log(LogSource.SERVER, "GPS module active: vehicle location will be updated.")
        self._stats = ZERO_STATS
        self._emit()

    def start_direct_rental(self, vehicle: Optional[ActiveVehicle]) -> None:
        """QR entry path: skip reservation and go straight to scanning."""
        if vehicle is None or not self._permits(Trigger.BEGIN):
            return
        self._clear_timers()
        self._stop_gps()
        self._metrics.stop()
        self._vehicle = vehicle
        self._stats = ZERO_STATS
        self._log.clear()
        self._add_log(LogSource.CLIENT, f"QR rental started for {vehicle.title}.")
        self._set_phase(Phase.SCANNING)
        self._add_log(LogSource.CLIENT, "QR scanned, ride start request sent.")

        def ride_starting() -> None:
            self._add_log(LogSource.SERVER, "Start ride module processing request.")
            self._add_log(LogSource.VEHICLE, "Vehicle unlocked, lights & horn triggered.")
            self._set_phase(Phase.RIDE_STARTING)
            # direct rentals mark the vehicle in use one step earlier
            self._publish(vehicle, VehicleStatus.IN_USE)
            self._schedule(self._enter_riding, self.timings.ride_start)

        self._schedule(ride_starting, self.timings.scan)
        self._emit()

    def reserve_vehicle(self) -> None:
        vehicle = self._vehicle
        if vehicle is None or not self._permits(Trigger.RESERVE):
            return
        self._set_phase(Phase.RESERVING)
        self._add_log(LogSource.CLIENT, "Reservation request sent.")

        def reserved() -> None:
            self._add_log(LogSource.SERVER, "Reserve module: vehicle set aside.")
            self._add_log(LogSource.VEHICLE, "Reservation notice (lights off).")
            self._set_phase(Phase.RESERVED)
            self._publish(vehicle, VehicleStatus.RESERVED)

        self._schedule(reserved, self.timings.reserve)
        self._emit()

    def scan_vehicle(self) -> None:
        vehicle = self._vehicle
        if vehicle is None or not self._permits(Trigger.SCAN):
            return
        self._set_phase(Phase.SCANNING)
        self._add_log(LogSource.CLIENT, "QR scanned, ride start request sent.")

        def ride_starting() -> None:
            self._add_log(LogSource.SERVER, "Start ride module processing request.")
            self._add_log(LogSource.VEHICLE, "Vehicle unlocked, lights & horn triggered.")
            self._set_phase(Phase.RIDE_STARTING)

            def riding() -> None:
                self._enter_riding()
                self._publish(vehicle, VehicleStatus.IN_USE)

            self._schedule(riding, self.timings.ride_start)

        self._schedule(ride_starting, self.timings.scan)
        self._emit()

    def find_vehicle(self) -> None:
        if self._vehicle is None or not self._permits(Trigger.FIND):
            return
        self._phase_before_find = self._phase
        self._add_log(LogSource.CLIENT, "Find request sent.")
        self._set_phase(Phase.FINDING)

        def found() -> None:
            self._add_log(LogSource.SERVER, "Find module: vehicle signals triggered.")
            self._add_log(LogSource.VEHICLE, "Horn and indicators fired briefly.")
            if self._phase_before_find is Phase.RESERVED:
                self._set_phase(Phase.RESERVED)
            else:
                self._set_phase(Phase.RIDING)

        self._schedule(found, self.timings.find)
        self._emit()

    def end_ride(self) -> None:
        vehicle = self._vehicle
        if vehicle is None or not self._permits(Trigger.END):
            return
        # pending scan / ride-start / find steps must not fire after completion
        self._clear_timers()
        self._set_phase(Phase.ENDING)
        self._add_log(LogSource.CLIENT, "End ride request sent.")

        def completed() -> None:
            self._add_log(LogSource.SERVER, "End ride module: lock confirmed.")
            self._add_log(LogSource.VEHICLE, "Vehicle locked and lights off.")
            self._add_log(LogSource.SERVER, "Payment module: charge completed.")
            self._stop_gps()
            self._metrics.stop()
            self._set_phase(Phase.COMPLETED)
            self._publish(vehicle, VehicleStatus.AVAILABLE)
            self._schedule(self._return_home, self.timings.completion_reset)

        self._schedule(completed, self.timings.end)
        self._emit()

    def reset_flow(self) -> None:
        self._clear_timers()
        self._stop_gps()
        self._metrics.stop()
        self._set_phase(Phase.IDLE)
        self._vehicle = None
        self._log.clear()
        self._stats = ZERO_STATS
        self._emit()

    def close(self) -> None:
        """Tear down: cancel every timer and drop subscribers."""
        self._clear_timers()
        self._stop_gps()
        self._metrics.stop()
        self._listeners.clear()
        self._closed = True

    # ── Scheduled steps ───────────────────────────────────────────────

    def _enter_riding(self) -> None:
        self._set_phase(Phase.RIDING)
        self._add_log(LogSource.VEHICLE, "Ride started, sending GPS data.")
        self._start_gps()
        if not self._metrics.running:
            self._metrics.start()

    def _return_home(self) -> None:
        self._add_log(LogSource.CLIENT, "Returned to home screen.")
        self._set_phase(Phase.IDLE)
        self._vehicle = None
        self._stats = ZERO_STATS

    # ── Internals ─────────────────────────────────────────────────────

    def _permits(self, trigger: Trigger) -> bool:
        if self._closed:
            return False
        if self.strict and self._phase not in PHASE_TRIGGERS[trigger]:
            logger.debug("Ignoring %s trigger in phase %s", trigger.value, self._phase.value)
            return False
        return True

    def _set_phase(self, phase: Phase) -> None:
        if phase is not self._phase:
            logger.debug("Phase %s -> %s", self._phase.value, phase.value)
        self._phase = phase

    def _add_log(self, source: LogSource, message: str) -> None:
        self._log.add(source, message)

    def _set_stats(self, stats: RideStats) -> None:
        self._stats = stats
        self._emit()

    def _publish(self, vehicle: ActiveVehicle, status: VehicleStatus) -> None:
        self._status_writer.publish(vehicle.id, status)

    def _schedule(self, callback: Callable[[], None], delay_ms: int) -> None:
        token = next(self._tokens)

        def fire() -> None:
            if self._pending.pop(token, None) is None:
                return
            callback()
            self._emit()

        self._pending[token] = self._timers.schedule_once(fire, delay_ms)

    def _clear_timers(self) -> None:
        pending, self._pending = self._pending, {}
        for handle in pending.values():
            self._timers.cancel(handle)

    def _start_gps(self) -> None:
        self._stop_gps()

        def ping() -> None:
            self._add_log(LogSource.VEHICLE, "GPS data sent.")
            self._emit()

        self._gps_handle = self._timers.schedule_repeating(ping, self.timings.gps_interval)

    def _stop_gps(self) -> None:
        if self._gps_handle is not None:
            self._timers.cancel_repeating(self._gps_handle)
            self._gps_handle = None

    def _emit(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Rental snapshot listener failed")
