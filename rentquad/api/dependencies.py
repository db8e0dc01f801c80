"""FastAPI dependency injection helpers."""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from rentquad.infrastructure.database import async_session_factory
from rentquad.services.rentals import RentalService


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_rental_service(request: Request) -> RentalService:
    """The process-wide rental session registry created at startup."""
    return request.app.state.rental_service
