"""
Background Session Reaper
=========================

Runs every ``REAPER_INTERVAL_SECONDS`` (default 60 s) and closes rental
sessions that have been idle for longer than ``SESSION_TTL_SECONDS`` and
have no flow in progress.  Closing a session cancels every timer its
engine still holds, so abandoned clients never leave ghost transitions
behind.  Each cycle also refreshes the Redis claim of every rental still
in progress so long rides outlive ``VEHICLE_CLAIM_TTL_SECONDS``.
"""

from __future__ import annotations

import asyncio
import logging

from rentquad.config import settings
from rentquad.services.rentals import RentalService

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_reaper_loop(service: RentalService) -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop(service))
    logger.info(
        "Session reaper started (interval=%ds, ttl=%ds)",
        settings.reaper_interval_seconds,
        settings.session_ttl_seconds,
    )


async def stop_reaper_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Session reaper stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop(service: RentalService) -> None:
    """Periodic loop: refresh claims, reap idle sessions, then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_reaper_cycle(service)
        except Exception:
            logger.exception("Unhandled error in reaper cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.reaper_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def run_reaper_cycle(service: RentalService) -> int:
    """Execute one reaper cycle.  Returns the number of sessions closed."""
    await service.refresh_claims()
    closed = service.reap_idle(settings.session_ttl_seconds)
    if closed:
        logger.info("Reaper cycle: %d idle sessions closed", closed)
    return closed
