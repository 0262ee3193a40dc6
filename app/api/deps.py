"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.services.scheduling import SchedulingService


async def get_scheduling_service(
    session: Annotated[AsyncSession, Depends(get_db)],
    site_id: Annotated[str, Path(min_length=1, max_length=64)],
) -> SchedulingService:
    """Build the scheduling service for the site in the request path.

    Args:
        session: Database session
        site_id: Site identifier from the URL

    Returns:
        SchedulingService bound to the site
    """
    return SchedulingService(session, site_id)


# Type aliases for cleaner route signatures
DbSession = Annotated[AsyncSession, Depends(get_db)]
SiteScheduling = Annotated[SchedulingService, Depends(get_scheduling_service)]
