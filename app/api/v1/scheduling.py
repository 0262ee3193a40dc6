"""Scheduling API endpoints: slot search, placement, visit commit and rosters."""

from datetime import date, datetime

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from app.api.deps import SiteScheduling
from app.scheduling.errors import (
    BatchCommitFailure,
    ConflictDetected,
    InvalidCapability,
    InvalidChain,
)
from app.scheduling.types import Chain, Placement, ResolvedPhase
from app.services.scheduling import SchedulingService, WorkerNotFoundError

router = APIRouter()


# ============================================================================
# Request/Response Schemas
# ============================================================================


class ServiceSelectionRequest(BaseModel):
    """One service pick; the first variant is used if none is given."""

    service_id: str
    variant_id: str | None = None


class ChainRequest(BaseModel):
    """Ordered service selection for one visit."""

    selections: list[ServiceSelectionRequest]
    gaps: list[int] | None = None
    preferred_worker_id: str | None = None


class SlotsRequest(ChainRequest):
    """Request to list start times on a date."""

    day: date


class SlotsResponse(BaseModel):
    """Feasible start times for a visit."""

    day: date
    total_minutes: int
    slots: list[datetime]


class PlacementRequest(ChainRequest):
    """Request to place a visit at one start time."""

    start_at: datetime


class ResolvedPhaseSchema(BaseModel):
    """One phase with its worker and times."""

    service_id: str
    service_name: str
    variant_id: str | None = None
    worker_id: str
    worker_name: str
    start_at: datetime
    end_at: datetime
    is_follow_up: bool = False

    class Config:
        from_attributes = True


class PlacementSchema(BaseModel):
    """Placement of every phase of a visit."""

    phases: list[ResolvedPhaseSchema]
    gaps: list[int]

    class Config:
        from_attributes = True

    def to_placement(self) -> Placement:
        return Placement(
            phases=tuple(ResolvedPhase(**phase.model_dump()) for phase in self.phases),
            gaps=tuple(self.gaps),
        )


class PlacementResponse(BaseModel):
    """Placement, or null when the visit does not fit at that time."""

    placement: PlacementSchema | None


class CommitVisitRequest(ChainRequest):
    """Request to book a previously offered placement.

    The selection is sent again so the placement can be checked against
    the catalog before it is written.
    """

    placement: PlacementSchema
    customer_key: str | None = Field(default=None, max_length=64)
    customer_name: str | None = Field(default=None, max_length=150)


class CommitVisitResponse(BaseModel):
    """Bookings written for a visit."""

    visit_group_id: str
    booking_ids: list[str]
    placement: PlacementSchema


class WorkerCapabilitiesRequest(BaseModel):
    """Replacement capability set for a worker."""

    service_ids: list[str]
    all_services: bool = False


class WorkerResponse(BaseModel):
    """Worker as used by the scheduler."""

    id: str
    name: str
    capabilities: list[str]
    all_services: bool
    active: bool


# ============================================================================
# Helpers
# ============================================================================


async def _chain_from_request(
    service: SchedulingService, request: ChainRequest
) -> Chain:
    try:
        return await service.build_chain(
            [(s.service_id, s.variant_id) for s in request.selections],
            request.gaps,
        )
    except InvalidChain as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/slots",
    response_model=SlotsResponse,
)
async def list_slots(
    site_id: str,
    service: SiteScheduling,
    request: SlotsRequest,
) -> SlotsResponse:
    """List start times on a date where the whole visit fits."""
    chain = await _chain_from_request(service, request)
    slots = await service.enumerate_slots(
        chain, request.day, preferred_worker_id=request.preferred_worker_id
    )
    return SlotsResponse(
        day=request.day,
        total_minutes=chain.total_minutes,
        slots=slots,
    )


@router.post(
    "/placements",
    response_model=PlacementResponse,
)
async def place_visit(
    site_id: str,
    service: SiteScheduling,
    request: PlacementRequest,
) -> PlacementResponse:
    """Assign a worker to every phase of a visit at one start time."""
    chain = await _chain_from_request(service, request)
    placement = await service.place_chain(
        chain, request.start_at, preferred_worker_id=request.preferred_worker_id
    )
    if placement is None:
        return PlacementResponse(placement=None)
    return PlacementResponse(placement=PlacementSchema.model_validate(placement))


@router.post(
    "/visits",
    response_model=CommitVisitResponse,
    status_code=status.HTTP_201_CREATED,
)
async def commit_visit(
    site_id: str,
    service: SiteScheduling,
    request: CommitVisitRequest,
) -> CommitVisitResponse:
    """Book a placement, reassigning workers if a race took one."""
    chain = await _chain_from_request(service, request)
    try:
        visit = await service.commit_visit(
            request.placement.to_placement(),
            customer_key=request.customer_key,
            customer_name=request.customer_name,
            chain=chain,
        )
    except InvalidChain as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    except ConflictDetected as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(e),
                "retryable": e.retryable,
                "phase_index": e.phase_index,
            },
        )
    except BatchCommitFailure:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Booking could not be saved, please retry",
        )

    return CommitVisitResponse(
        visit_group_id=visit.visit_group_id,
        booking_ids=list(visit.booking_ids),
        placement=PlacementSchema.model_validate(visit.placement),
    )


@router.put(
    "/workers/{worker_id}/capabilities",
    response_model=WorkerResponse,
)
async def set_worker_capabilities(
    site_id: str,
    worker_id: str,
    service: SiteScheduling,
    request: WorkerCapabilitiesRequest,
) -> WorkerResponse:
    """Replace the services a worker may perform."""
    try:
        worker = await service.set_worker_capabilities(
            worker_id, request.service_ids, all_services=request.all_services
        )
    except WorkerNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Worker not found",
        )
    except InvalidCapability as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(e), "unknown_service_ids": e.unknown_service_ids},
        )

    return WorkerResponse(
        id=worker.id,
        name=worker.name,
        capabilities=sorted(worker.capabilities),
        all_services=worker.all_services,
        active=worker.active,
    )
