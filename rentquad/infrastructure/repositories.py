"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import VehicleModel
from rentquad.domain.enums import VehicleStatus


class VehicleRepository:
    model: Any = VehicleModel

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, vehicle: Any) -> Any:
        self.session.add(vehicle)
        await self.session.flush()
        return vehicle

    async def get_by_id(self, vehicle_id: str) -> Optional[VehicleModel]:
        return await self.session.get(self.model, vehicle_id)

    async def get_by_code(self, code: str) -> Optional[VehicleModel]:
        result = await self.session.execute(
            select(self.model).where(self.model.code == code)
        )
        return result.scalar_one_or_none()

    async def list_in_cells(self, cells: Iterable[str]) -> list[VehicleModel]:
        """Non-retired vehicles located in any of the given H3 cells."""
        result = await self.session.execute(
            select(self.model)
            .where(self.model.h3_cell.in_(list(cells)))
            .where(self.model.status != VehicleStatus.RETIRED)
        )
        return list(result.scalars().all())

    async def update_status(self, vehicle_id: str, status: VehicleStatus) -> bool:
        """Set the stored status.  Returns False if no such vehicle exists."""
        result = await self.session.execute(
            update(self.model)
            .where(self.model.id == vehicle_id)
            .values(status=status)
        )
        return result.rowcount > 0
