"""Database initialization utilities."""

import logging
from datetime import time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import app.models  # noqa: F401  (registers all tables on Base.metadata)
from app.db.base import Base
from app.db.session import engine
from app.models.roster import BusinessDay, DayOfWeek

logger = logging.getLogger(__name__)


async def create_tables() -> None:
    """Create all database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def create_default_hours(session: AsyncSession, site_id: str) -> int:
    """Seed Monday-Saturday 09:00-18:00 hours for a site with none configured.

    Args:
        session: Database session
        site_id: Site to seed

    Returns:
        Number of business days created
    """
    result = await session.execute(
        select(BusinessDay).where(BusinessDay.site_id == site_id).limit(1)
    )
    if result.scalar_one_or_none():
        logger.info("Business hours already configured for %s, skipping", site_id)
        return 0

    for day in DayOfWeek:
        session.add(
            BusinessDay(
                site_id=site_id,
                day_of_week=day.value,
                enabled=day is not DayOfWeek.SUNDAY,
                open_time=time(9, 0),
                close_time=time(18, 0),
                breaks=[],
            )
        )
    await session.commit()
    logger.info("Seeded default business hours for %s", site_id)
    return len(DayOfWeek)


async def init_db(session: AsyncSession, site_id: str = "default") -> None:
    """Initialize database with required data.

    Args:
        session: Database session
        site_id: Site that gets default hours
    """
    await create_tables()
    await create_default_hours(session, site_id)
    logger.info("Database initialization complete")
