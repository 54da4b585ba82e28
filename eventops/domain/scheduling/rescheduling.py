"""
Rescheduling coordinator.

The only path that moves a commitment's window. The new window is checked
against the same resolver used for booking (excluding the commitment itself),
and the move plus its history entry are written in one resource-scoped
transaction: on conflict nothing changes.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...models import STATUS_RESCHEDULED, Commitment, CommitmentHistory
from ...shared.validators import business_now
from .commitments import CommitmentStore
from .exceptions import SchedulingConflict
from .intervals import Interval
from .locks import ResourceLockManager, critical_section, resource_locks
from .repository import CommitmentRepository
from .resolver import ConflictResolver

logger = logging.getLogger(__name__)


class ReschedulingCoordinator:
    def __init__(
        self,
        db: Session,
        locks: ResourceLockManager = resource_locks,
        clock: Callable[[], datetime] = business_now,
    ):
        self.db = db
        self.locks = locks
        self.clock = clock
        self.commitments = CommitmentStore(db, locks=locks, clock=clock)

    def reschedule(
        self,
        commitment_id: int,
        new_window: Interval,
        reason: Optional[str] = None,
        changed_by: Optional[str] = None,
    ) -> Commitment:
        """
        Move a commitment to ``new_window``.

        Raises:
            CommitmentNotFound: missing or already cancelled
            SchedulingConflict: new window unavailable (commitment untouched)
        """
        commitment = self.commitments.get_active(commitment_id)

        with critical_section(self.db, commitment.resource_id, self.locks):
            commitment = self.commitments.get_active(commitment_id)
            verdict = ConflictResolver(self.db, clock=self.clock).check_availability(
                commitment.resource_id, new_window, exclude_id=commitment.id
            )
            if not verdict.available:
                logger.warning(
                    f"⚠️ Reschedule of commitment {commitment_id} to {new_window.start}..{new_window.end} "
                    f"rejected: {[r.code for r in verdict.reasons]}"
                )
                raise SchedulingConflict(verdict.reasons)

            previous_start, previous_end = commitment.start_at, commitment.end_at
            CommitmentRepository.add_history_entry(
                self.db,
                commitment.id,
                previous_start_at=previous_start,
                previous_end_at=previous_end,
                new_start_at=new_window.start,
                new_end_at=new_window.end,
                reason=reason,
                changed_at=self.clock(),
                changed_by=changed_by,
            )

            commitment.start_at = new_window.start
            commitment.end_at = new_window.end
            commitment.status = STATUS_RESCHEDULED
            # Both sides must confirm the new time again
            commitment.confirmed_by_resource = False
            commitment.confirmed_by_counterpart = False

        logger.info(
            f"🔁 Commitment {commitment_id} rescheduled {previous_start}..{previous_end} -> "
            f"{new_window.start}..{new_window.end} by {changed_by or 'system'}"
        )
        return commitment

    def history(self, commitment_id: int) -> list[CommitmentHistory]:
        """Reschedule trail, newest first"""
        self.commitments.get(commitment_id)
        return CommitmentRepository.get_history(self.db, commitment_id)
