"""
Concurrency safety tests.

Demonstrates:
1. Distributed lock acquire / extend / release semantics (mocked Redis).
2. A vehicle is handed to at most one user, in-process and across
   processes (two registries sharing one lock key space).
3. The vehicle claim is held for the whole flow and released when the
   flow completes, is reset, or the session closes.
4. Concurrent begin calls for one vehicle produce a single winner.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from rentquad.domain.enums import Phase, Trigger
from rentquad.domain.qr import build_vehicle_qr
from rentquad.infrastructure.locks import DistributedLock
from rentquad.services.rentals import RentalService, VehicleUnavailable
from tests.fakes import FakeLock, VehicleRow, fake_lock_factory


@pytest.fixture
def service(timers, publisher):
    svc = RentalService(timers, publisher, lock_factory=fake_lock_factory)
    yield svc
    svc.close_all()


@pytest.fixture
def other_service(timers, publisher):
    """A second registry, standing in for another API process."""
    svc = RentalService(timers, publisher, lock_factory=fake_lock_factory)
    yield svc
    svc.close_all()


async def ride_to_completion(service, timers, user_id):
    service.perform(user_id, Trigger.RESERVE)
    timers.advance(1300)
    service.perform(user_id, Trigger.SCAN)
    timers.advance(1100 + 1200)
    service.perform(user_id, Trigger.END)
    timers.advance(1500)
    await service.drain()


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_succeeds(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)

        lock = DistributedLock(mock_redis, "vehicle:v1", ttl_seconds=10)
        assert await lock.acquire() is True
        mock_redis.set.assert_awaited_once_with(
            "lock:vehicle:v1", lock.token, nx=True, ex=10
        )

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=None)

        lock = DistributedLock(mock_redis, "vehicle:v1")
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_release_runs_check_and_delete(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)

        lock = DistributedLock(mock_redis, "vehicle:v1")
        await lock.acquire()
        await lock.release()

        args = mock_redis.eval.await_args.args
        assert args[1:] == (1, "lock:vehicle:v1", lock.token)

    @pytest.mark.asyncio
    async def test_extend_resets_ttl_for_owner(self):
        mock_redis = AsyncMock()
        mock_redis.eval = AsyncMock(return_value=1)

        lock = DistributedLock(mock_redis, "vehicle:v1", ttl_seconds=30)
        assert await lock.extend() is True
        args = mock_redis.eval.await_args.args
        assert args[1:] == (1, "lock:vehicle:v1", lock.token, 30)

    @pytest.mark.asyncio
    async def test_extend_reports_lost_lock(self):
        mock_redis = AsyncMock()
        mock_redis.eval = AsyncMock(return_value=0)

        lock = DistributedLock(mock_redis, "vehicle:v1")
        assert await lock.extend() is False

    @pytest.mark.asyncio
    async def test_tokens_differ_per_lock(self):
        a = DistributedLock(AsyncMock(), "k")
        b = DistributedLock(AsyncMock(), "k")
        assert a.token != b.token


class TestVehicleClaims:
    @pytest.mark.asyncio
    async def test_second_user_cannot_take_held_vehicle(self, service):
        row = VehicleRow(id="v1", code="RQ-1")
        await service.begin("alice", row)

        with pytest.raises(VehicleUnavailable, match="already rented"):
            await service.begin("bob", row)
        assert service.snapshot("bob").phase == Phase.IDLE

    @pytest.mark.asyncio
    async def test_lock_held_elsewhere_rejects(self, service):
        FakeLock.held.add("vehicle:v1")

        with pytest.raises(VehicleUnavailable, match="someone else"):
            await service.begin("alice", VehicleRow(id="v1", code="RQ-1"))
        assert service.snapshot("alice").phase == Phase.IDLE
        assert service.find_session("alice").claim is None

    @pytest.mark.asyncio
    async def test_claim_held_while_flow_in_progress(self, service, timers):
        await service.begin("alice", VehicleRow(id="v1"))
        assert FakeLock.held == {"vehicle:v1"}

        service.perform("alice", Trigger.RESERVE)
        timers.advance(1300)
        service.perform("alice", Trigger.SCAN)
        timers.advance(1100 + 1200)
        await service.drain()

        assert service.snapshot("alice").phase == Phase.RIDING
        assert FakeLock.held == {"vehicle:v1"}

    @pytest.mark.asyncio
    async def test_other_process_cannot_take_vehicle_mid_rental(
        self, service, other_service, timers
    ):
        row = VehicleRow(id="v1", code="RQ-1")
        await service.begin("alice", row)
        service.perform("alice", Trigger.RESERVE)
        timers.advance(1300)

        with pytest.raises(VehicleUnavailable, match="someone else"):
            await other_service.begin("bob", row)
        with pytest.raises(VehicleUnavailable, match="someone else"):
            await other_service.scan_qr("bob", build_vehicle_qr("v1"), _lookup(row))
        assert other_service.snapshot("bob").phase == Phase.IDLE

    @pytest.mark.asyncio
    async def test_claim_released_after_completion(
        self, service, other_service, timers
    ):
        row = VehicleRow(id="v1")
        await service.begin("alice", row)
        await ride_to_completion(service, timers, "alice")

        assert service.snapshot("alice").phase == Phase.COMPLETED
        assert FakeLock.held == set()
        snap = await other_service.begin("bob", row)
        assert snap.phase == Phase.SELECTING

    @pytest.mark.asyncio
    async def test_claim_released_on_reset(self, service, other_service):
        row = VehicleRow(id="v1")
        await service.begin("alice", row)
        service.reset("alice")
        await service.drain()

        assert FakeLock.held == set()
        snap = await other_service.begin("bob", row)
        assert snap.phase == Phase.SELECTING

    @pytest.mark.asyncio
    async def test_claim_released_on_close(self, service):
        await service.begin("alice", VehicleRow(id="v1"))
        service.close("alice")
        await service.drain()
        assert FakeLock.held == set()

    @pytest.mark.asyncio
    async def test_rejection_keeps_winner_claim(self, service):
        row = VehicleRow(id="v1")
        await service.begin("alice", row)
        with pytest.raises(VehicleUnavailable):
            await service.begin("bob", row)
        assert FakeLock.held == {"vehicle:v1"}

    @pytest.mark.asyncio
    async def test_vehicle_free_again_after_reset(self, service):
        row = VehicleRow(id="v1")
        await service.begin("alice", row)
        service.reset("alice")

        snap = await service.begin("bob", row)
        assert snap.phase == Phase.SELECTING

    @pytest.mark.asyncio
    async def test_refresh_extends_held_claims(self, service):
        await service.begin("alice", VehicleRow(id="v1"))
        await service.begin("bob", VehicleRow(id="v2"))
        service.session("carol")

        assert await service.refresh_claims() == 2

    @pytest.mark.asyncio
    async def test_refresh_warns_on_expired_claim(self, service, caplog):
        await service.begin("alice", VehicleRow(id="v1"))
        FakeLock.held.discard("vehicle:v1")

        assert await service.refresh_claims() == 0
        assert "expired before refresh" in caplog.text

    @pytest.mark.asyncio
    async def test_concurrent_begins_single_winner(self, service):
        row = VehicleRow(id="v1")
        results = await asyncio.gather(
            *(service.begin(f"user{i}", row) for i in range(5)),
            return_exceptions=True,
        )
        winners = [r for r in results if not isinstance(r, Exception)]
        assert len(winners) == 1
        assert all(isinstance(r, VehicleUnavailable) for r in results if r not in winners)
        holders = [s for s in service.sessions() if s.engine.flow_in_progress]
        assert len(holders) == 1


def _lookup(*rows):
    by_id = {r.id: r for r in rows}

    async def lookup(vehicle_id):
        return by_id.get(vehicle_id)

    return lookup
