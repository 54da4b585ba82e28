"""Scheduling service - Business logic behind the scheduling endpoints"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from ...auth import CurrentUser
from ...config import CONFLICT_AUDIT_DAYS, DEFAULT_HOLD_HOURS, DEFAULT_SLOT_MINUTES, PAST_GRACE_MINUTES
from ...models import (
    Block,
    Commitment,
    CommitmentHistory,
    RecurringAvailability,
    Resource,
    TemporaryHold,
)
from ...services.notification_service import (
    COMMITMENT_CANCELLED,
    COMMITMENT_CONFIRMED,
    COMMITMENT_CREATED,
    COMMITMENT_RESCHEDULED,
    NotificationDispatcher,
    commitment_payload,
)
from ...shared.validators import business_now
from .blocking import BlockingStore
from .commitments import CommitmentStore
from .exceptions import AvailabilityRowNotFound, InvalidWindow, PermissionDenied, ResourceNotFound
from .holds import HoldStore
from .intervals import Interval, time_of_day_window
from .locks import ResourceLockManager, resource_locks
from .registry import ResourceRegistry
from .repository import AvailabilityRepository, ResourceRepository
from .rescheduling import ReschedulingCoordinator
from .resolver import ConflictResolver
from .schemas import (
    AvailabilityRowCreate,
    BlockCreate,
    CommitmentConflict,
    CommitmentCreate,
    HoldConvertRequest,
    HoldCreate,
    Verdict,
)

logger = logging.getLogger(__name__)


class SchedulingService:
    """Service layer wiring the scheduling engine to callers, permissions and notifications"""

    def __init__(
        self,
        db: Session,
        notifications: NotificationDispatcher,
        locks: ResourceLockManager = resource_locks,
        clock: Callable[[], datetime] = business_now,
        past_grace_minutes: int = PAST_GRACE_MINUTES,
    ):
        self.db = db
        self.notifications = notifications
        self.clock = clock
        self.past_grace = timedelta(minutes=past_grace_minutes)
        self.registry = ResourceRegistry(db)
        self.blocking = BlockingStore(db)
        self.resolver = ConflictResolver(db, clock=clock)
        self.commitments = CommitmentStore(db, locks=locks, clock=clock)
        self.rescheduler = ReschedulingCoordinator(db, locks=locks, clock=clock)
        self.holds = HoldStore(db, locks=locks, clock=clock)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _ensure_not_past(self, window: Interval) -> None:
        cutoff = self.clock() - self.past_grace
        if window.start < cutoff:
            raise InvalidWindow(f"Window starts in the past ({window.start})")

    def _ensure_can_manage(self, resource: Resource, user: CurrentUser) -> None:
        if user.is_admin or (resource.owner_id and resource.owner_id == user.id):
            return
        logger.warning(f"⚠️ User {user.id} tried to manage resource {resource.id} without permission")
        raise PermissionDenied("You can only manage your own agenda")

    def _owning_resource(self, resource_id: int) -> Resource:
        resource = ResourceRepository.get_resource(self.db, resource_id)
        if resource is None:
            raise ResourceNotFound(resource_id)
        return resource

    # ------------------------------------------------------------------
    # Resources and nominal availability
    # ------------------------------------------------------------------

    def list_resources(self, kind: Optional[str] = None, active: Optional[bool] = None) -> list[Resource]:
        return ResourceRepository.list_resources(self.db, kind=kind, active=active)

    def get_resource(self, resource_id: int) -> Resource:
        return self.registry.get_resource(resource_id)

    def list_availability(self, resource_id: int) -> list[RecurringAvailability]:
        self.registry.get_resource(resource_id)
        return AvailabilityRepository.list_for_resource(self.db, resource_id)

    def add_availability(
        self, resource_id: int, data: AvailabilityRowCreate, user: CurrentUser
    ) -> RecurringAvailability:
        resource = self.registry.get_resource(resource_id)
        self._ensure_can_manage(resource, user)
        # Rejects start >= end
        time_of_day_window(data.start_time, data.end_time)

        row = AvailabilityRepository.create_row(
            self.db,
            resource_id,
            weekday=data.weekday,
            start_time=data.start_time,
            end_time=data.end_time,
            active=True,
        )
        logger.info(
            f"🗓️ Availability {row.id} added to resource {resource_id}: "
            f"weekday {data.weekday} {data.start_time}-{data.end_time}"
        )
        return row

    def remove_availability(self, resource_id: int, row_id: int, user: CurrentUser) -> RecurringAvailability:
        """Soft delete: the row is kept but no longer counts"""
        resource = self.registry.get_resource(resource_id)
        self._ensure_can_manage(resource, user)

        row = AvailabilityRepository.get_row(self.db, row_id, resource_id)
        if not row:
            raise AvailabilityRowNotFound(row_id)
        row = AvailabilityRepository.deactivate_row(self.db, row)
        logger.info(f"🗓️ Availability {row_id} of resource {resource_id} deactivated by {user.id}")
        return row

    # ------------------------------------------------------------------
    # Availability queries (advisory, outside the critical section)
    # ------------------------------------------------------------------

    def check_availability(self, resource_id: int, window: Interval) -> Verdict:
        return self.resolver.check_availability(resource_id, window)

    def suggest_slots(self, resource_id: int, day: date, duration_minutes: Optional[int] = None) -> list[Interval]:
        return self.resolver.suggest_slots(resource_id, day, duration_minutes or DEFAULT_SLOT_MINUTES)

    # ------------------------------------------------------------------
    # Commitments
    # ------------------------------------------------------------------

    def create_commitment(
        self,
        data: CommitmentCreate,
        user: CurrentUser,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> Commitment:
        window = data.window.to_interval()
        self._ensure_not_past(window)

        commitment = self.commitments.create(
            data.resource_id,
            window,
            title=data.title,
            counterpart_name=data.counterpart_name,
            counterpart_email=data.counterpart_email,
            notes=data.notes,
            created_by=user.id,
        )
        self.notifications.dispatch(
            COMMITMENT_CREATED, commitment_payload(commitment, actor=user.id), background_tasks
        )
        return commitment

    def get_commitment(self, commitment_id: int) -> Commitment:
        return self.commitments.get(commitment_id)

    def list_commitments(
        self,
        resource_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        status: Optional[str] = None,
    ) -> list[Commitment]:
        return self.commitments.search(
            resource_id=resource_id,
            date_from=datetime.combine(date_from, time.min) if date_from else None,
            date_to=datetime.combine(date_to + timedelta(days=1), time.min) if date_to else None,
            status=status,
        )

    def reschedule_commitment(
        self,
        commitment_id: int,
        new_window: Interval,
        user: CurrentUser,
        reason: Optional[str] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> Commitment:
        commitment = self.commitments.get_active(commitment_id)
        self._ensure_can_manage(self._owning_resource(commitment.resource_id), user)
        self._ensure_not_past(new_window)

        commitment = self.rescheduler.reschedule(
            commitment_id, new_window, reason=reason, changed_by=user.id
        )
        self.notifications.dispatch(
            COMMITMENT_RESCHEDULED,
            commitment_payload(commitment, actor=user.id, reason=reason),
            background_tasks,
        )
        return commitment

    def cancel_commitment(
        self,
        commitment_id: int,
        user: CurrentUser,
        reason: Optional[str] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> Commitment:
        commitment = self.commitments.get(commitment_id)
        self._ensure_can_manage(self._owning_resource(commitment.resource_id), user)

        commitment, changed = self.commitments.cancel(commitment_id, cancelled_by=user.id, reason=reason)
        if changed:
            self.notifications.dispatch(
                COMMITMENT_CANCELLED,
                commitment_payload(commitment, actor=user.id, reason=reason),
                background_tasks,
            )
        return commitment

    def confirm_commitment(
        self,
        commitment_id: int,
        by: str,
        user: CurrentUser,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> Commitment:
        commitment = self.commitments.get_active(commitment_id)
        self._ensure_can_manage(self._owning_resource(commitment.resource_id), user)

        commitment = self.commitments.confirm(commitment_id, by)
        self.notifications.dispatch(
            COMMITMENT_CONFIRMED,
            commitment_payload(commitment, actor=user.id, confirmed_by=by),
            background_tasks,
        )
        return commitment

    def get_history(self, commitment_id: int) -> list[CommitmentHistory]:
        return self.rescheduler.history(commitment_id)

    def audit_conflicts(
        self,
        user: CurrentUser,
        resource_id: Optional[int] = None,
        days_ahead: int = CONFLICT_AUDIT_DAYS,
    ) -> list[CommitmentConflict]:
        """Admins may sweep every resource; anyone else only a resource they manage"""
        if resource_id is not None:
            self._ensure_can_manage(self._owning_resource(resource_id), user)
        elif not user.is_admin:
            raise PermissionDenied("Only admins can audit every agenda")
        return self.resolver.audit_conflicts(days_ahead=days_ahead, resource_id=resource_id)

    # ------------------------------------------------------------------
    # Temporary holds
    # ------------------------------------------------------------------

    def _ensure_can_manage_hold(self, hold: TemporaryHold, user: CurrentUser) -> None:
        if hold.created_by and hold.created_by == user.id:
            return
        self._ensure_can_manage(self._owning_resource(hold.resource_id), user)

    def list_holds(
        self,
        resource_id: Optional[int] = None,
        status: Optional[str] = None,
        created_by: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        include_expired: bool = False,
    ) -> list[TemporaryHold]:
        return self.holds.search(
            resource_id=resource_id,
            status=status,
            created_by=created_by,
            date_from=datetime.combine(date_from, time.min) if date_from else None,
            date_to=datetime.combine(date_to + timedelta(days=1), time.min) if date_to else None,
            include_expired=include_expired,
        )

    def get_hold(self, hold_id: int) -> TemporaryHold:
        return self.holds.get(hold_id)

    def place_hold(self, data: HoldCreate, user: CurrentUser) -> TemporaryHold:
        window = data.window.to_interval()
        self._ensure_not_past(window)
        return self.holds.place(
            data.resource_id,
            window,
            data.hold_hours or DEFAULT_HOLD_HOURS,
            counterpart_name=data.counterpart_name,
            counterpart_email=data.counterpart_email,
            notes=data.notes,
            created_by=user.id,
        )

    def extend_hold(self, hold_id: int, hours: int, user: CurrentUser) -> TemporaryHold:
        self._ensure_can_manage_hold(self.holds.get(hold_id), user)
        return self.holds.extend(hold_id, hours)

    def release_hold(self, hold_id: int, user: CurrentUser, reason: Optional[str] = None) -> TemporaryHold:
        self._ensure_can_manage_hold(self.holds.get(hold_id), user)
        return self.holds.release(hold_id, released_by=user.id, reason=reason)

    def convert_hold(
        self,
        hold_id: int,
        data: HoldConvertRequest,
        user: CurrentUser,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> tuple[TemporaryHold, Commitment]:
        hold = self.holds.get(hold_id)
        self._ensure_can_manage_hold(hold, user)
        self._ensure_not_past(Interval(hold.start_at, hold.end_at))

        hold, commitment = self.holds.convert(
            hold_id,
            title=data.title,
            notes=data.notes or hold.notes,
            created_by=user.id,
        )
        self.notifications.dispatch(
            COMMITMENT_CREATED,
            commitment_payload(commitment, actor=user.id, hold_id=hold.id),
            background_tasks,
        )
        return hold, commitment

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def list_blocks(self, **filters) -> list[Block]:
        return self.blocking.list_blocks(**filters)

    def create_block(self, data: BlockCreate, user: CurrentUser) -> Block:
        resource = self.registry.get_resource(data.resource_id)
        self._ensure_can_manage(resource, user)
        return self.blocking.create_block(
            data.resource_id,
            data.start_date,
            data.end_date,
            start_time=data.start_time,
            end_time=data.end_time,
            block_type=data.block_type,
            reason=data.reason,
            created_by=user.id,
        )

    def delete_block(self, block_id: int, user: CurrentUser) -> None:
        block = self.blocking.get_block(block_id)
        self._ensure_can_manage(self._owning_resource(block.resource_id), user)
        self.blocking.delete_block(block_id)
