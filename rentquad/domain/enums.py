"""Domain enumerations and phase-trigger rules."""

import enum


class Phase(str, enum.Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    RESERVING = "reserving"
    RESERVED = "reserved"
    SCANNING = "scanning"
    RIDE_STARTING = "rideStarting"
    RIDING = "riding"
    FINDING = "finding"
    ENDING = "ending"
    COMPLETED = "completed"


class Trigger(str, enum.Enum):
    BEGIN = "begin"
    RESERVE = "reserve"
    SCAN = "scan"
    FIND = "find"
    END = "end"


class VehicleStatus(str, enum.Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"


class LogSource(str, enum.Enum):
    CLIENT = "Client"
    SERVER = "Server"
    VEHICLE = "Vehicle"


_ACTIVE_RIDE_PHASES = {
    Phase.RESERVED,
    Phase.SCANNING,
    Phase.RIDE_STARTING,
    Phase.RIDING,
    Phase.FINDING,
}

# Trigger table: maps a user trigger -> set of phases it may be issued from.
# Capabilities are derived from it; strict engines also enforce it.
PHASE_TRIGGERS: dict[Trigger, set[Phase]] = {
    Trigger.BEGIN: {Phase.IDLE, Phase.COMPLETED},
    Trigger.RESERVE: {Phase.SELECTING},
    Trigger.SCAN: {Phase.RESERVED},
    Trigger.FIND: set(_ACTIVE_RIDE_PHASES),
    Trigger.END: set(_ACTIVE_RIDE_PHASES),
}

# Phases during which a rental counts as "in progress".
FLOW_PHASES: frozenset[Phase] = frozenset(
    {
        Phase.SELECTING,
        Phase.RESERVING,
        Phase.RESERVED,
        Phase.SCANNING,
        Phase.RIDE_STARTING,
        Phase.RIDING,
        Phase.FINDING,
        Phase.ENDING,
    }
)


def phase_driven_status(phase: Phase) -> VehicleStatus | None:
    """Vehicle status implied by the renter's current phase, if any."""
    if phase in (Phase.RESERVING, Phase.RESERVED):
        return VehicleStatus.RESERVED
    if phase in (
        Phase.SCANNING,
        Phase.RIDE_STARTING,
        Phase.RIDING,
        Phase.FINDING,
        Phase.ENDING,
    ):
        return VehicleStatus.IN_USE
    return None
