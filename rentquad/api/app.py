"""
FastAPI application factory.

* Registers routes for rentals, vehicles and admin.
* Builds the rental session registry and starts / stops the session
  reaper via lifespan events; on shutdown every session is closed and
  vehicle claims and in-flight vehicle status writes are drained.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from rentquad.api.middleware import limiter
from rentquad.api.routes import admin, rentals, vehicles
from rentquad.config import settings
from rentquad.infrastructure.database import async_session_factory
from rentquad.infrastructure.gateway import SqlVehicleStatusGateway, StatusPublisher
from rentquad.infrastructure.redis_client import close_redis
from rentquad.infrastructure.timers import AsyncioTimerFacility
from rentquad.services.rentals import RentalService
from rentquad.workers import reaper as _reaper

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the session registry and reaper on startup; tear down on shutdown."""
    publisher = StatusPublisher(SqlVehicleStatusGateway(async_session_factory))
    service = RentalService.from_settings(settings, AsyncioTimerFacility(), publisher)
    app.state.rental_service = service
    await _reaper.start_reaper_loop(service)
    yield
    await _reaper.stop_reaper_loop()
    service.close_all()
    await service.drain()
    await publisher.drain()
    await close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title="RentQuad Rental API",
        description=(
            "Drives short-term vehicle rentals through a timed lifecycle "
            "(reserve, scan, ride, end), lists nearby vehicles and keeps "
            "vehicle status in sync on a best-effort basis."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Routers
    app.include_router(rentals.router, prefix="/api/v1")
    app.include_router(vehicles.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
