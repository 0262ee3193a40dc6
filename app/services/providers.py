"""SQLAlchemy-backed roster, calendar and catalog providers."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.catalog import Service, ServiceVariant
from app.models.roster import BusinessDay, ClosedDate, Worker as WorkerRow
from app.scheduling.types import BusinessHours, ServiceSelection, Worker
from app.utils.ids import is_uuid


class SqlRosterProvider:
    """Workers of a site in roster order."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_workers(self, site_id: str) -> list[Worker]:
        result = await self.session.execute(
            select(WorkerRow)
            .where(WorkerRow.site_id == site_id)
            .order_by(WorkerRow.display_order, WorkerRow.name)
        )
        return [row.to_roster_worker() for row in result.scalars().all()]

    async def get_worker_row(self, site_id: str, worker_id: str) -> WorkerRow | None:
        if not is_uuid(worker_id):
            return None
        result = await self.session.execute(
            select(WorkerRow).where(
                WorkerRow.id == worker_id,
                WorkerRow.site_id == site_id,
            )
        )
        return result.scalar_one_or_none()


class SqlCalendarConfigProvider:
    """Business hours and closed dates of a site."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_business_hours(self, site_id: str) -> BusinessHours:
        days_result = await self.session.execute(
            select(BusinessDay).where(BusinessDay.site_id == site_id)
        )
        closed_result = await self.session.execute(
            select(ClosedDate.closed_on).where(ClosedDate.site_id == site_id)
        )
        return BusinessHours(
            days={row.day_of_week: row.to_day_hours() for row in days_result.scalars()},
            closed_dates=frozenset(closed_result.scalars().all()),
        )


class SqlServiceCatalog:
    """Services and variants of a site."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_selection(
        self, site_id: str, service_id: str, variant_id: str | None
    ) -> ServiceSelection | None:
        """Resolve a (service, variant) pick; the first variant if none is given."""
        if not is_uuid(service_id) or (variant_id and not is_uuid(variant_id)):
            return None
        service = await self.session.get(Service, service_id)
        if service is None or service.site_id != site_id or not service.is_active:
            return None

        query = select(ServiceVariant).where(ServiceVariant.service_id == service_id)
        if variant_id:
            query = query.where(ServiceVariant.id == variant_id)
        result = await self.session.execute(query.order_by(ServiceVariant.created_at).limit(1))
        variant = result.scalar_one_or_none()
        if variant is None:
            return None
        return variant.to_selection(service)

    async def list_service_ids(self, site_id: str) -> set[str]:
        result = await self.session.execute(
            select(Service.id).where(Service.site_id == site_id)
        )
        return set(result.scalars().all())
