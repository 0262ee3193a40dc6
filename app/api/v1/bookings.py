"""Booking API endpoints: visit group lookup and cascade cancellation."""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app.api.deps import SiteScheduling
from app.booking.cascade import CancelReason
from app.scheduling.types import VisitGroup

router = APIRouter()


class VisitGroupResponse(BaseModel):
    """Bookings that make up one visit."""

    root_id: str
    member_ids: list[str]
    source: str

    @classmethod
    def from_group(cls, group: VisitGroup) -> "VisitGroupResponse":
        return cls(
            root_id=group.root_id,
            member_ids=list(group.member_ids),
            source=group.source.value,
        )


class CancelRequest(BaseModel):
    """Cancellation details; note and actor are ignored for automatic expiry."""

    reason: CancelReason = CancelReason.MANUAL
    note: str | None = Field(default=None, max_length=2000)
    actor: str | None = Field(default=None, max_length=64)


class CancelGroupRequest(CancelRequest):
    """Cancel an explicit list of bookings."""

    booking_ids: list[str] = Field(min_length=1)


class CancelResponse(BaseModel):
    """Outcome of a cascade cancellation."""

    success_count: int
    fail_count: int
    group: VisitGroupResponse | None = None


@router.get(
    "/{booking_id}/group",
    response_model=VisitGroupResponse,
)
async def get_visit_group(
    site_id: str,
    booking_id: str,
    service: SiteScheduling,
) -> VisitGroupResponse:
    """Resolve every booking belonging to the same visit."""
    group = await service.resolve_cascade_group(booking_id)
    return VisitGroupResponse.from_group(group)


@router.post(
    "/{booking_id}/cancel",
    response_model=CancelResponse,
)
async def cancel_visit(
    site_id: str,
    booking_id: str,
    service: SiteScheduling,
    request: CancelRequest,
) -> CancelResponse:
    """Cancel the whole visit a booking belongs to.

    Repeating the call is a no-op returning zero counts.
    """
    group, result = await service.cancel_visit(
        booking_id, request.reason, note=request.note, actor=request.actor
    )
    return CancelResponse(
        success_count=result.success_count,
        fail_count=result.fail_count,
        group=VisitGroupResponse.from_group(group),
    )


@router.post(
    "/cancel-group",
    response_model=CancelResponse,
)
async def cancel_group(
    site_id: str,
    service: SiteScheduling,
    request: CancelGroupRequest,
) -> CancelResponse:
    """Cancel an explicit set of bookings in one batch."""
    result = await service.cancel_group(
        request.booking_ids, request.reason, note=request.note, actor=request.actor
    )
    return CancelResponse(
        success_count=result.success_count,
        fail_count=result.fail_count,
    )
