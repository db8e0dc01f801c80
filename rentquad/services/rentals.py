"""
Rental Sessions
===============

Owns one ``RentalEngine`` per user session and enforces the rules that sit
above the engine:

* a user holds at most one vehicle at a time -- beginning a rental on a
  different vehicle while a flow is in progress is rejected;
* a vehicle is held by at most one session -- checked in-process, and
  across processes by a per-vehicle Redis claim held for the whole flow;
* QR scans are parsed here, then either complete the scan step of a
  reserved rental or start a direct rental;
* actions whose capability flag is off are rejected.

Vehicle claims
--------------
Starting a rental takes the vehicle's claim lock before the engine moves.
The claim stays in Redis while the flow is in progress; the session
watches its engine's snapshots and releases the claim once the flow ends
(completed, reset, or a different vehicle), or when the session closes.
``refresh_claims`` keeps the TTL alive for long rides.

Sessions are created lazily on first use and closed explicitly or by the
reaper once idle.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from rentquad.config import settings
from rentquad.domain.engine import FlowTimings, RentalEngine
from rentquad.domain.entities import ActiveVehicle, RentalSnapshot
from rentquad.domain.enums import Trigger, VehicleStatus
from rentquad.domain.pricing import FareEstimator
from rentquad.domain.qr import parse_vehicle_qr
from rentquad.infrastructure.locks import DistributedLock
from rentquad.infrastructure.redis_client import get_redis

logger = logging.getLogger(__name__)

VehicleLookup = Callable[[str], Awaitable[Optional[Any]]]
LockFactory = Callable[[str], Awaitable[Any]]


# ── Errors ────────────────────────────────────────────────────────────


class RentalError(Exception):
    """Base class for rejections raised by the rental sessions."""


class VehicleNotFound(RentalError):
    pass


class VehicleUnavailable(RentalError):
    pass


class RentalConflict(RentalError):
    """The user already has a rental in progress on another vehicle."""


class WrongVehicle(RentalError):
    """A scanned QR code does not match the vehicle the user holds."""


class ActionNotAllowed(RentalError):
    """The requested action is not available in the current phase."""


# ── Sessions ──────────────────────────────────────────────────────────


@dataclass
class VehicleClaim:
    vehicle_id: str
    lock: Any


@dataclass
class RentalSession:
    user_id: str
    engine: RentalEngine
    last_seen: float = field(default_factory=time.monotonic)
    claim: Optional[VehicleClaim] = None

    def touch(self) -> None:
        self.last_seen = time.monotonic()


class RentalService:
    def __init__(
        self,
        timers: Any,
        publisher: Any,
        *,
        timings: FlowTimings | None = None,
        fares: FareEstimator | None = None,
        log_limit: int = 40,
        strict: bool = False,
        lock_factory: LockFactory | None = None,
    ):
        self.timers = timers
        self.publisher = publisher
        self.timings = timings or FlowTimings()
        self.fares = fares or FareEstimator()
        self.log_limit = log_limit
        self.strict = strict
        self.lock_factory = lock_factory or _redis_lock
        self._sessions: dict[str, RentalSession] = {}
        self._releases: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, config: Any, timers: Any, publisher: Any, **kwargs) -> "RentalService":
        return cls(
            timers,
            publisher,
            timings=FlowTimings.from_settings(config),
            fares=FareEstimator(
                minimum_fare=config.minimum_fare,
                rate_per_km=config.rate_per_km,
                km_per_second=config.km_per_second,
            ),
            log_limit=config.log_limit,
            strict=config.strict_transitions,
            **kwargs,
        )

    # ── Session lifecycle ─────────────────────────────────────────────

    def session(self, user_id: str) -> RentalSession:
        """Return the user's session, opening one if needed."""
        current = self._sessions.get(user_id)
        if current is None:
            engine = RentalEngine(
                self.timers,
                self.publisher,
                timings=self.timings,
                fares=self.fares,
                log_limit=self.log_limit,
                strict=self.strict,
            )
            current = RentalSession(user_id=user_id, engine=engine)
            engine.subscribe(lambda snap, s=current: self._watch_claim(s, snap))
            self._sessions[user_id] = current
            logger.info("Opened rental session for user %s", user_id)
        current.touch()
        return current

    def find_session(self, user_id: str) -> Optional[RentalSession]:
        return self._sessions.get(user_id)

    def sessions(self) -> list[RentalSession]:
        return list(self._sessions.values())

    def close(self, user_id: str) -> bool:
        current = self._sessions.pop(user_id, None)
        if current is None:
            return False
        current.engine.close()
        self._drop_claim(current)
        logger.info("Closed rental session for user %s", user_id)
        return True

    def close_all(self) -> None:
        for user_id in list(self._sessions):
            self.close(user_id)

    def reap_idle(self, ttl_seconds: float, now: float | None = None) -> int:
        """Close sessions idle for longer than *ttl_seconds* with no flow running."""
        now = time.monotonic() if now is None else now
        stale = [
            s.user_id
            for s in self._sessions.values()
            if now - s.last_seen > ttl_seconds and not s.engine.flow_in_progress
        ]
        for user_id in stale:
            self.close(user_id)
        return len(stale)

    def holder_of(self, vehicle_id: str) -> Optional[str]:
        """User whose in-progress rental holds *vehicle_id*, if any."""
        for s in self._sessions.values():
            vehicle = s.engine.active_vehicle
            if vehicle and vehicle.id == vehicle_id and s.engine.flow_in_progress:
                return s.user_id
        return None

    # ── Claims ────────────────────────────────────────────────────────

    async def refresh_claims(self) -> int:
        """Extend the TTL of every held claim.  Returns the number refreshed."""
        refreshed = 0
        for s in list(self._sessions.values()):
            claim = s.claim
            if claim is None:
                continue
            if await claim.lock.extend():
                refreshed += 1
            else:
                logger.warning(
                    "Claim on vehicle %s for user %s expired before refresh",
                    claim.vehicle_id, s.user_id,
                )
        return refreshed

    async def drain(self) -> None:
        """Wait for pending claim releases (used on shutdown and in tests)."""
        while self._releases:
            await asyncio.gather(*list(self._releases), return_exceptions=True)

    # ── Actions ───────────────────────────────────────────────────────

    def snapshot(self, user_id: str) -> RentalSnapshot:
        return self.session(user_id).engine.snapshot()

    async def begin(self, user_id: str, record: Optional[Any]) -> RentalSnapshot:
        session = self.session(user_id)
        engine = session.engine
        if record is None:
            raise VehicleNotFound("Vehicle not found")
        vehicle_id = str(record.id)

        held = engine.active_vehicle
        if engine.flow_in_progress and held is not None and held.id != vehicle_id:
            raise RentalConflict(
                f"Rental already in progress for {held.title}; end or reset it first"
            )
        if not engine.snapshot().capabilities.can_start:
            raise ActionNotAllowed(f"Cannot begin a rental in phase {engine.phase.value}")

        await self._claim(session, record, engine.begin_rental)
        return engine.snapshot()

    async def scan_qr(
        self, user_id: str, payload: str, lookup: VehicleLookup
    ) -> RentalSnapshot:
        vehicle_id = parse_vehicle_qr(payload)
        session = self.session(user_id)
        engine = session.engine
        held = engine.active_vehicle

        if held is not None and engine.flow_in_progress:
            if held.id != vehicle_id:
                raise WrongVehicle(
                    f"Reserved vehicle is {held.code or held.title}; scan its QR code "
                    "or cancel the reservation"
                )
            return self.perform(user_id, Trigger.SCAN)

        record = await lookup(vehicle_id)
        if record is None:
            raise VehicleNotFound("No vehicle is registered for this QR code")
        await self._claim(session, record, engine.start_direct_rental)
        return engine.snapshot()

    def perform(self, user_id: str, trigger: Trigger) -> RentalSnapshot:
        """Run a capability-gated engine action."""
        if trigger is Trigger.BEGIN:
            raise ActionNotAllowed("Rentals are started with a vehicle, not as a flow action")
        engine = self.session(user_id).engine
        if not engine.snapshot().capabilities.allows(trigger):
            raise ActionNotAllowed(
                f"Cannot {trigger.value} in phase {engine.phase.value}"
            )
        {
            Trigger.RESERVE: engine.reserve_vehicle,
            Trigger.SCAN: engine.scan_vehicle,
            Trigger.FIND: engine.find_vehicle,
            Trigger.END: engine.end_ride,
        }[trigger]()
        return engine.snapshot()

    def reset(self, user_id: str) -> RentalSnapshot:
        engine = self.session(user_id).engine
        engine.reset_flow()
        return engine.snapshot()

    # ── Internals ─────────────────────────────────────────────────────

    async def _claim(
        self,
        session: RentalSession,
        record: Any,
        start: Callable[[ActiveVehicle], None],
    ) -> None:
        vehicle_id = str(record.id)
        label = record.code or vehicle_id
        if VehicleStatus(record.status) is not VehicleStatus.AVAILABLE:
            raise VehicleUnavailable(f"{label} is in use or under maintenance")

        holder = self.holder_of(vehicle_id)
        if holder is not None and holder != session.user_id:
            raise VehicleUnavailable(f"{label} is already rented")

        # a finished flow's release may still be in flight
        await self.drain()

        lock = await self.lock_factory(f"vehicle:{vehicle_id}")
        if not await lock.acquire():
            raise VehicleUnavailable(f"{label} is being rented by someone else")
        session.claim = VehicleClaim(vehicle_id, lock)
        try:
            start(ActiveVehicle.from_record(record))
        except Exception:
            self._drop_claim(session)
            raise
        if not session.engine.flow_in_progress:
            self._drop_claim(session)
            return
        logger.info("User %s claimed vehicle %s", session.user_id, vehicle_id)

    def _watch_claim(self, session: RentalSession, snapshot: RentalSnapshot) -> None:
        claim = session.claim
        if claim is None:
            return
        vehicle = snapshot.active_vehicle
        if snapshot.flow_in_progress and vehicle is not None and vehicle.id == claim.vehicle_id:
            return
        self._drop_claim(session)

    def _drop_claim(self, session: RentalSession) -> None:
        claim, session.claim = session.claim, None
        if claim is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop; claim on vehicle %s left to expire",
                claim.vehicle_id,
            )
            return
        task = loop.create_task(self._release(claim))
        self._releases.add(task)
        task.add_done_callback(self._releases.discard)

    async def _release(self, claim: VehicleClaim) -> None:
        try:
            await claim.lock.release()
            logger.info("Released claim on vehicle %s", claim.vehicle_id)
        except Exception as exc:
            logger.warning(
                "Releasing claim on vehicle %s failed: %s", claim.vehicle_id, exc
            )


async def _redis_lock(key: str) -> DistributedLock:
    return DistributedLock(await get_redis(), key, settings.vehicle_claim_ttl_seconds)
