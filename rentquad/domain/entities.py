"""
Domain entities and value objects for the rental lifecycle.

Everything here is immutable: the engine replaces values instead of
mutating them, so a snapshot handed to a subscriber never changes under it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .enums import FLOW_PHASES, PHASE_TRIGGERS, LogSource, Phase, Trigger


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class ActiveVehicle:
    id: str
    title: str
    code: Optional[str] = None
    battery_percent: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_record(cls, record: Any) -> "ActiveVehicle":
        """Build from a persisted vehicle row (or anything shaped like one)."""
        return cls(
            id=str(record.id),
            title=format_vehicle_title(record),
            code=getattr(record, "code", None),
            battery_percent=getattr(record, "battery_percent", None),
            latitude=getattr(record, "latitude", None),
            longitude=getattr(record, "longitude", None),
        )


@dataclass(frozen=True)
class LogEntry:
    id: str
    source: LogSource
    message: str
    timestamp: datetime


@dataclass(frozen=True)
class RideStats:
    duration_seconds: int = 0
    distance_km: float = 0.0
    estimated_cost: float = 0.0


ZERO_STATS = RideStats()


@dataclass(frozen=True)
class Capabilities:
    can_start: bool = False
    can_reserve: bool = False
    can_scan: bool = False
    can_find: bool = False
    can_end: bool = False

    @classmethod
    def for_phase(cls, phase: Phase) -> "Capabilities":
        return cls(
            can_start=phase in PHASE_TRIGGERS[Trigger.BEGIN],
            can_reserve=phase in PHASE_TRIGGERS[Trigger.RESERVE],
            can_scan=phase in PHASE_TRIGGERS[Trigger.SCAN],
            can_find=phase in PHASE_TRIGGERS[Trigger.FIND],
            can_end=phase in PHASE_TRIGGERS[Trigger.END],
        )

    def allows(self, trigger: Trigger) -> bool:
        return {
            Trigger.BEGIN: self.can_start,
            Trigger.RESERVE: self.can_reserve,
            Trigger.SCAN: self.can_scan,
            Trigger.FIND: self.can_find,
            Trigger.END: self.can_end,
        }[trigger]


@dataclass(frozen=True)
class RentalSnapshot:
    phase: Phase = Phase.IDLE
    active_vehicle: Optional[ActiveVehicle] = None
    logs: tuple[LogEntry, ...] = ()
    ride_stats: RideStats = ZERO_STATS
    capabilities: Capabilities = field(
        default_factory=lambda: Capabilities.for_phase(Phase.IDLE)
    )

    @property
    def flow_in_progress(self) -> bool:
        return self.active_vehicle is not None and self.phase in FLOW_PHASES


# ── Helpers ───────────────────────────────────────────────────────────


def format_vehicle_title(vehicle: Any) -> str:
    """Human-readable vehicle title.

    A display name equal to the model is considered generic and skipped.
    Preference order: ``"Name (CODE)"``, name, code, model, ``"Vehicle #id"``.
    """
    if vehicle is None:
        return "Vehicle"

    raw_name = (getattr(vehicle, "display_name", None) or "").strip()
    raw_model = (getattr(vehicle, "model", None) or "").strip()
    code = (getattr(vehicle, "code", None) or "").strip()
    vehicle_id = getattr(vehicle, "id", None)
    fallback = f"Vehicle #{vehicle_id}" if vehicle_id else "Vehicle"

    is_generic = not raw_name or (
        bool(raw_model) and raw_name.lower() == raw_model.lower()
    )
    name = "" if is_generic else raw_name

    if name and code and name.lower() != code.lower():
        return f"{name} ({code})"
    return name or code or raw_model or fallback
