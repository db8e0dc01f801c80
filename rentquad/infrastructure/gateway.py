"""
Vehicle Status Gateway.

``SqlVehicleStatusGateway`` persists ``vehicles.status`` in its own short
unit-of-work.  ``StatusPublisher`` is the fire-and-forget wrapper the
rental engine talks to: it schedules the write on the running loop and
returns at once.  Failures are logged and dropped -- the engine's phase
is authoritative, the stored status is best-effort.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rentquad.domain.enums import VehicleStatus

from .repositories import VehicleRepository

logger = logging.getLogger(__name__)


class SqlVehicleStatusGateway:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def set_status(self, vehicle_id: str, status: VehicleStatus) -> None:
        async with self.session_factory() as session:
            updated = await VehicleRepository(session).update_status(vehicle_id, status)
            if not updated:
                raise LookupError(f"Vehicle {vehicle_id} not found")
            await session.commit()


class StatusPublisher:
    def __init__(self, gateway: Any):
        self.gateway = gateway
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def publish(self, vehicle_id: str, status: VehicleStatus) -> None:
        if not vehicle_id or not status:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop; dropped status %s for vehicle %s",
                status.value, vehicle_id,
            )
            return
        task = loop.create_task(self._write(vehicle_id, status))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for every in-flight write (used on shutdown and in tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _write(self, vehicle_id: str, status: VehicleStatus) -> None:
        try:
            await self.gateway.set_status(vehicle_id, status)
        except Exception as exc:
            logger.warning(
                "Vehicle status update failed (%s -> %s): %s",
                vehicle_id, status.value, exc,
            )
