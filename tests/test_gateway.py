"""
Vehicle status gateway tests.

``StatusPublisher`` runs against an ``AsyncMock`` gateway; the SQL gateway
runs against in-memory SQLite with the repository swapped for the
SQLite-friendly subclass.
"""

import logging
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from rentquad.domain.enums import VehicleStatus
from rentquad.infrastructure.gateway import SqlVehicleStatusGateway, StatusPublisher
from tests.sqlite_models import (
    SqliteVehicleRepository,
    TestSessionFactory,
    TestVehicleModel,
)


class TestStatusPublisher:
    @pytest.mark.asyncio
    async def test_publish_returns_before_write(self, gateway, publisher):
        publisher.publish("v1", VehicleStatus.RESERVED)
        assert publisher.pending == 1
        gateway.set_status.assert_not_awaited()

        await publisher.drain()
        gateway.set_status.assert_awaited_once_with("v1", VehicleStatus.RESERVED)
        assert publisher.pending == 0

    @pytest.mark.asyncio
    async def test_failure_is_logged_and_dropped(self, gateway, publisher, caplog):
        gateway.set_status.side_effect = RuntimeError("db down")

        with caplog.at_level(logging.WARNING):
            publisher.publish("v1", VehicleStatus.IN_USE)
            await publisher.drain()

        assert "Vehicle status update failed (v1 -> in_use): db down" in caplog.text

    @pytest.mark.asyncio
    async def test_empty_vehicle_id_is_ignored(self, gateway, publisher):
        publisher.publish("", VehicleStatus.AVAILABLE)
        await publisher.drain()
        gateway.set_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_writes_are_independent(self, gateway, publisher):
        calls = []

        async def flaky(vehicle_id, status):
            calls.append(vehicle_id)
            if vehicle_id == "bad":
                raise ConnectionError("nope")

        gateway.set_status.side_effect = flaky
        publisher.publish("bad", VehicleStatus.RESERVED)
        publisher.publish("good", VehicleStatus.RESERVED)
        await publisher.drain()
        assert sorted(calls) == ["bad", "good"]

    def test_publish_without_loop_is_dropped(self, caplog):
        gateway = AsyncMock()
        publisher = StatusPublisher(gateway)

        with caplog.at_level(logging.WARNING):
            publisher.publish("v1", VehicleStatus.RESERVED)

        assert publisher.pending == 0
        assert "No running event loop" in caplog.text


class TestSqlVehicleStatusGateway:
    @pytest.mark.asyncio
    async def test_updates_stored_status(self, db_session):
        db_session.add(TestVehicleModel(id="v1", code="RQ-1", status="available"))
        await db_session.commit()

        with patch(
            "rentquad.infrastructure.gateway.VehicleRepository",
            SqliteVehicleRepository,
        ):
            await SqlVehicleStatusGateway(TestSessionFactory).set_status(
                "v1", VehicleStatus.RESERVED
            )

        async with TestSessionFactory() as session:
            result = await session.execute(
                select(TestVehicleModel.status).where(TestVehicleModel.id == "v1")
            )
            assert result.scalar_one() == "reserved"

    @pytest.mark.asyncio
    async def test_unknown_vehicle_raises(self, db_session):
        with patch(
            "rentquad.infrastructure.gateway.VehicleRepository",
            SqliteVehicleRepository,
        ):
            with pytest.raises(LookupError):
                await SqlVehicleStatusGateway(TestSessionFactory).set_status(
                    "missing", VehicleStatus.IN_USE
                )
