"""Scheduling router - FastAPI endpoints for availability, commitments, holds, blocks and resources"""

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response
from sqlalchemy.orm import Session

from ...auth import CurrentUser, get_current_user
from ...config import CONFLICT_AUDIT_DAYS, DEFAULT_SLOT_MINUTES
from ...database import get_db
from ...models import HOLD_ACTIVE, Commitment, CommitmentHistory, TemporaryHold
from ...services.notification_service import NotificationDispatcher, get_notification_dispatcher
from .schemas import (
    AvailabilityCheckRequest,
    AvailabilityRowCreate,
    AvailabilityRowResponse,
    BlockCreate,
    BlockResponse,
    CancelRequest,
    CommitmentConflict,
    CommitmentCreate,
    CommitmentResponse,
    ConfirmationFlags,
    ConfirmRequest,
    HistoryEntryResponse,
    HoldConversionResponse,
    HoldConvertRequest,
    HoldCreate,
    HoldExtendRequest,
    HoldReleaseRequest,
    HoldResponse,
    RescheduleRequest,
    ResourceResponse,
    SlotSuggestionRequest,
    SlotSuggestionResponse,
    Verdict,
    WindowOut,
)
from .service import SchedulingService

router = APIRouter(tags=["Scheduling"])


def get_scheduling_service(
    db: Session = Depends(get_db),
    notifications: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> SchedulingService:
    """Dependency injection for SchedulingService"""
    return SchedulingService(db, notifications)


def commitment_response(c: Commitment) -> CommitmentResponse:
    return CommitmentResponse(
        id=c.id,
        resource_id=c.resource_id,
        window=WindowOut(start=c.start_at, end=c.end_at),
        status=c.status,
        counterpart_confirmed=ConfirmationFlags(
            by_resource=c.confirmed_by_resource,
            by_counterpart=c.confirmed_by_counterpart,
        ),
        title=c.title,
        counterpart_name=c.counterpart_name,
        counterpart_email=c.counterpart_email,
        notes=c.notes,
        created_by=c.created_by,
        cancelled_at=c.cancelled_at,
        cancellation_reason=c.cancellation_reason,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


def history_response(h: CommitmentHistory) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        id=h.id,
        commitment_id=h.commitment_id,
        previous_window=WindowOut(start=h.previous_start_at, end=h.previous_end_at),
        new_window=WindowOut(start=h.new_start_at, end=h.new_end_at),
        reason=h.reason,
        changed_at=h.changed_at,
        changed_by=h.changed_by,
    )


def hold_response(h: TemporaryHold, now: datetime) -> HoldResponse:
    live = h.status == HOLD_ACTIVE and h.expires_at > now
    return HoldResponse(
        id=h.id,
        resource_id=h.resource_id,
        window=WindowOut(start=h.start_at, end=h.end_at),
        status=h.status,
        expires_at=h.expires_at,
        remaining_minutes=int((h.expires_at - now).total_seconds() // 60) if live else 0,
        counterpart_name=h.counterpart_name,
        counterpart_email=h.counterpart_email,
        notes=h.notes,
        created_by=h.created_by,
        converted_commitment_id=h.converted_commitment_id,
        converted_at=h.converted_at,
        released_at=h.released_at,
        release_reason=h.release_reason,
        created_at=h.created_at,
    )


# ============================================================================
# AVAILABILITY
# ============================================================================


@router.post("/availability/check", response_model=Verdict)
def check_availability(
    data: AvailabilityCheckRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Advisory availability verdict with every applicable conflict reason"""
    return service.check_availability(data.resource_id, data.window.to_interval())


@router.post("/availability/slots", response_model=SlotSuggestionResponse)
def suggest_slots(
    data: SlotSuggestionRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Free slots of the requested length on a given day"""
    slots = service.suggest_slots(data.resource_id, data.day, data.duration_minutes)
    return SlotSuggestionResponse(
        resource_id=data.resource_id,
        day=data.day,
        duration_minutes=data.duration_minutes or DEFAULT_SLOT_MINUTES,
        slots=[WindowOut.from_interval(s) for s in slots],
    )


# ============================================================================
# COMMITMENTS
# ============================================================================


@router.post("/commitments", response_model=CommitmentResponse, status_code=201)
def create_commitment(
    data: CommitmentCreate,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Book a window; 409 with the conflict reasons if it is not available"""
    return commitment_response(service.create_commitment(data, current_user, background_tasks))


@router.get("/commitments", response_model=list[CommitmentResponse])
def list_commitments(
    resource_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    status: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    commitments = service.list_commitments(resource_id, date_from, date_to, status)
    return [commitment_response(c) for c in commitments]


@router.get("/commitments/conflicts", response_model=list[CommitmentConflict])
def audit_conflicts(
    resource_id: Optional[int] = Query(None),
    days_ahead: int = Query(CONFLICT_AUDIT_DAYS, gt=0, le=366),
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Pairs of active commitments that overlap on the same resource, from today on"""
    return service.audit_conflicts(current_user, resource_id=resource_id, days_ahead=days_ahead)


@router.get("/commitments/{commitment_id}", response_model=CommitmentResponse)
def get_commitment(
    commitment_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return commitment_response(service.get_commitment(commitment_id))


@router.post("/commitments/{commitment_id}/reschedule", response_model=CommitmentResponse)
def reschedule_commitment(
    commitment_id: int,
    data: RescheduleRequest,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Move a commitment; nothing changes on 409"""
    commitment = service.reschedule_commitment(
        commitment_id,
        data.new_window.to_interval(),
        current_user,
        reason=data.reason,
        background_tasks=background_tasks,
    )
    return commitment_response(commitment)


@router.post("/commitments/{commitment_id}/cancel", response_model=CommitmentResponse)
def cancel_commitment(
    commitment_id: int,
    background_tasks: BackgroundTasks,
    data: Optional[CancelRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Cancel a commitment (idempotent)"""
    reason = data.reason if data else None
    commitment = service.cancel_commitment(
        commitment_id, current_user, reason=reason, background_tasks=background_tasks
    )
    return commitment_response(commitment)


@router.post("/commitments/{commitment_id}/confirm", response_model=CommitmentResponse)
def confirm_commitment(
    commitment_id: int,
    data: ConfirmRequest,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    commitment = service.confirm_commitment(
        commitment_id, data.by, current_user, background_tasks=background_tasks
    )
    return commitment_response(commitment)


@router.get("/commitments/{commitment_id}/history", response_model=list[HistoryEntryResponse])
def get_commitment_history(
    commitment_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Reschedule trail, newest first"""
    return [history_response(h) for h in service.get_history(commitment_id)]


# ============================================================================
# TEMPORARY HOLDS
# ============================================================================


@router.get("/holds", response_model=list[HoldResponse])
def list_holds(
    resource_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    created_by: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    include_expired: bool = Query(False),
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    holds = service.list_holds(
        resource_id=resource_id,
        status=status,
        created_by=created_by,
        date_from=date_from,
        date_to=date_to,
        include_expired=include_expired,
    )
    now = service.clock()
    return [hold_response(h, now) for h in holds]


@router.post("/holds", response_model=HoldResponse, status_code=201)
def place_hold(
    data: HoldCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Keep a window off the market for a while; 409 with reasons if it is taken"""
    return hold_response(service.place_hold(data, current_user), service.clock())


@router.get("/holds/{hold_id}", response_model=HoldResponse)
def get_hold(
    hold_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return hold_response(service.get_hold(hold_id), service.clock())


@router.post("/holds/{hold_id}/extend", response_model=HoldResponse)
def extend_hold(
    hold_id: int,
    data: HoldExtendRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return hold_response(service.extend_hold(hold_id, data.hours, current_user), service.clock())


@router.post("/holds/{hold_id}/release", response_model=HoldResponse)
def release_hold(
    hold_id: int,
    data: Optional[HoldReleaseRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    reason = data.reason if data else None
    return hold_response(service.release_hold(hold_id, current_user, reason=reason), service.clock())


@router.post("/holds/{hold_id}/convert", response_model=HoldConversionResponse, status_code=201)
def convert_hold(
    hold_id: int,
    background_tasks: BackgroundTasks,
    data: Optional[HoldConvertRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Turn a live hold into a commitment on the same window"""
    hold, commitment = service.convert_hold(
        hold_id, data or HoldConvertRequest(), current_user, background_tasks=background_tasks
    )
    return HoldConversionResponse(
        hold=hold_response(hold, service.clock()),
        commitment=commitment_response(commitment),
    )


# ============================================================================
# BLOCKS
# ============================================================================


@router.get("/blocks", response_model=list[BlockResponse])
def list_blocks(
    resource_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    block_type: Optional[str] = Query(None),
    active: Optional[bool] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.list_blocks(
        resource_id=resource_id,
        date_from=date_from,
        date_to=date_to,
        block_type=block_type,
        active=active,
    )


@router.post("/blocks", response_model=BlockResponse, status_code=201)
def create_block(
    data: BlockCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.create_block(data, current_user)


@router.delete("/blocks/{block_id}", status_code=204)
def delete_block(
    block_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    service.delete_block(block_id, current_user)
    return Response(status_code=204)


# ============================================================================
# RESOURCES (read-only) AND RECURRING AVAILABILITY
# ============================================================================


@router.get("/resources", response_model=list[ResourceResponse])
def list_resources(
    kind: Optional[str] = Query(None),
    active: Optional[bool] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.list_resources(kind=kind, active=active)


@router.get("/resources/{resource_id}", response_model=ResourceResponse)
def get_resource(
    resource_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.get_resource(resource_id)


@router.get("/resources/{resource_id}/availability", response_model=list[AvailabilityRowResponse])
def list_availability(
    resource_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.list_availability(resource_id)


@router.post(
    "/resources/{resource_id}/availability",
    response_model=AvailabilityRowResponse,
    status_code=201,
)
def add_availability(
    resource_id: int,
    data: AvailabilityRowCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.add_availability(resource_id, data, current_user)


@router.delete(
    "/resources/{resource_id}/availability/{row_id}",
    response_model=AvailabilityRowResponse,
)
def remove_availability(
    resource_id: int,
    row_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.remove_availability(resource_id, row_id, current_user)
