"""Commitment store - active bookings per resource and their lifecycle"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...models import (
    ACTIVE_STATUSES,
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    STATUS_SCHEDULED,
    Commitment,
)
from ...shared.validators import business_now
from .exceptions import CommitmentNotFound, SchedulingConflict
from .intervals import Interval
from .locks import ResourceLockManager, critical_section, resource_locks
from .repository import CommitmentRepository

logger = logging.getLogger(__name__)

CONFIRM_BY_RESOURCE = "resource"
CONFIRM_BY_COUNTERPART = "counterpart"
CONFIRM_BY_BOTH = "both"


class CommitmentStore:
    """
    Owns commitment rows. ``create``, ``cancel`` and ``confirm`` each run inside
    the resource's critical section so they never interleave with a reschedule
    of the same resource.
    """

    def __init__(
        self,
        db: Session,
        locks: ResourceLockManager = resource_locks,
        clock: Callable[[], datetime] = business_now,
    ):
        self.db = db
        self.locks = locks
        self.clock = clock

    def get(self, commitment_id: int) -> Commitment:
        commitment = CommitmentRepository.get_commitment(self.db, commitment_id)
        if not commitment:
            raise CommitmentNotFound(commitment_id)
        return commitment

    def get_active(self, commitment_id: int) -> Commitment:
        """Like ``get`` but cancelled commitments count as missing"""
        commitment = self.get(commitment_id)
        if commitment.status == STATUS_CANCELLED:
            raise CommitmentNotFound(commitment_id)
        return commitment

    def find_overlapping(
        self, resource_id: int, window: Interval, exclude_id: Optional[int] = None
    ) -> list[Commitment]:
        return CommitmentRepository.find_overlapping(
            self.db, resource_id, window.start, window.end, exclude_id=exclude_id
        )

    def search(self, **filters) -> list[Commitment]:
        return CommitmentRepository.search_commitments(self.db, **filters)

    def create(self, resource_id: int, window: Interval, **details) -> Commitment:
        """Book ``window`` on the resource; fails with SchedulingConflict if it is not available"""
        with critical_section(self.db, resource_id, self.locks):
            commitment = self.book(resource_id, window, **details)

        logger.info(
            f"📅 Commitment {commitment.id} created on resource {resource_id}: {window.start}..{window.end}"
        )
        return commitment

    def book(
        self, resource_id: int, window: Interval, exclude_hold_id: Optional[int] = None, **details
    ) -> Commitment:
        """
        Check ``window`` and stage a new commitment on it. The caller must already
        be inside the resource's critical section and owns the commit.
        """
        from .resolver import ConflictResolver

        verdict = ConflictResolver(self.db, clock=self.clock).check_availability(
            resource_id, window, exclude_hold_id=exclude_hold_id
        )
        if not verdict.available:
            logger.warning(
                f"⚠️ Booking rejected on resource {resource_id} {window.start}..{window.end}: "
                f"{[r.code for r in verdict.reasons]}"
            )
            raise SchedulingConflict(verdict.reasons)

        return CommitmentRepository.add_commitment(
            self.db,
            resource_id,
            start_at=window.start,
            end_at=window.end,
            status=STATUS_SCHEDULED,
            confirmed_by_resource=False,
            confirmed_by_counterpart=False,
            **details,
        )

    def cancel(
        self,
        commitment_id: int,
        cancelled_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> tuple[Commitment, bool]:
        """
        Cancel a commitment. Cancelling twice is a no-op; the flag tells whether
        this call was the one that cancelled it.
        """
        commitment = self.get(commitment_id)
        if commitment.status == STATUS_CANCELLED:
            return commitment, False

        with critical_section(self.db, commitment.resource_id, self.locks, require_active=False):
            commitment = self.get(commitment_id)
            changed = commitment.status != STATUS_CANCELLED
            if changed:
                commitment.status = STATUS_CANCELLED
                commitment.cancelled_at = self.clock()
                commitment.cancelled_by = cancelled_by
                commitment.cancellation_reason = reason

        if changed:
            logger.info(f"❌ Commitment {commitment_id} cancelled by {cancelled_by or 'system'}")
        else:
            logger.info(f"ℹ️ Commitment {commitment_id} was cancelled by a concurrent request - nothing to do")
        return commitment, changed

    def confirm(self, commitment_id: int, by: str) -> Commitment:
        """
        Record a confirmation from the resource side, the counterpart, or both.
        The commitment becomes ``confirmed`` once both flags are set.
        """
        if by not in (CONFIRM_BY_RESOURCE, CONFIRM_BY_COUNTERPART, CONFIRM_BY_BOTH):
            raise ValueError(f"Unknown confirmation side: {by}")

        commitment = self.get_active(commitment_id)
        with critical_section(self.db, commitment.resource_id, self.locks):
            commitment = self.get_active(commitment_id)
            if by in (CONFIRM_BY_RESOURCE, CONFIRM_BY_BOTH):
                commitment.confirmed_by_resource = True
            if by in (CONFIRM_BY_COUNTERPART, CONFIRM_BY_BOTH):
                commitment.confirmed_by_counterpart = True
            if (
                commitment.confirmed_by_resource
                and commitment.confirmed_by_counterpart
                and commitment.status in ACTIVE_STATUSES
            ):
                commitment.status = STATUS_CONFIRMED

        logger.info(f"✅ Commitment {commitment_id} confirmed by {by} (status: {commitment.status})")
        return commitment
