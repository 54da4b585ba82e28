"""
Conflict resolver - the single authority on whether a window can be booked.

Every check runs (no short-circuit) so callers get the full diagnostic:
outside nominal hours, blocked, each overlapping commitment and each live hold.
"""

import logging
from datetime import date, datetime, time, timedelta
from itertools import groupby
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...config import CONFLICT_AUDIT_DAYS, MAX_SUGGESTED_SLOTS, SLOT_STEP_MINUTES
from ...shared.validators import business_now
from .blocking import BlockingStore
from .commitments import CommitmentStore
from .intervals import Interval, at_day
from .registry import ResourceRegistry
from .repository import CommitmentRepository, HoldRepository
from .schemas import CommitmentConflict, ConflictReason, Verdict, WindowOut

logger = logging.getLogger(__name__)


class ConflictResolver:
    def __init__(self, db: Session, clock: Callable[[], datetime] = business_now):
        self.db = db
        self.clock = clock
        self.registry = ResourceRegistry(db)
        self.blocking = BlockingStore(db)
        self.commitments = CommitmentStore(db)

    def check_availability(
        self,
        resource_id: int,
        window: Interval,
        exclude_id: Optional[int] = None,
        exclude_hold_id: Optional[int] = None,
    ) -> Verdict:
        reasons = []

        if not self.registry.is_nominally_available(resource_id, window):
            reasons.append(ConflictReason.outside_nominal_hours())

        blocking = self.blocking.find_blocking(resource_id, window)
        if blocking:
            reasons.append(ConflictReason.blocked(blocking[0].id))

        overlapping = self.commitments.find_overlapping(resource_id, window, exclude_id=exclude_id)
        for commitment in overlapping:
            reasons.append(ConflictReason.overlapping_commitment(commitment.id))

        # Lapsed holds stop counting at expires_at even before they are flagged expired
        held = HoldRepository.find_live_overlapping(
            self.db, resource_id, window.start, window.end, self.clock(), exclude_id=exclude_hold_id
        )
        for hold in held:
            reasons.append(ConflictReason.held(hold.id))

        verdict = Verdict(available=not reasons, reasons=reasons)
        logger.debug(
            f"🔍 Resource {resource_id} {window.start}..{window.end}: "
            f"available={verdict.available} reasons={[r.code for r in reasons]}"
        )
        return verdict

    def suggest_slots(
        self,
        resource_id: int,
        day: date,
        duration_minutes: int,
        step_minutes: int = SLOT_STEP_MINUTES,
        limit: int = MAX_SUGGESTED_SLOTS,
    ) -> list[Interval]:
        """
        Free windows of ``duration_minutes`` on ``day``, stepping through each
        nominal window every ``step_minutes``. Advisory only.
        """
        self.registry.get_resource(resource_id)

        slots = []
        for nominal in self.registry.daily_windows(resource_id, day):
            minute = nominal.start
            while minute + duration_minutes <= nominal.end and len(slots) < limit:
                candidate = at_day(day, Interval(minute, minute + duration_minutes))
                if self.check_availability(resource_id, candidate).available:
                    slots.append(candidate)
                minute += step_minutes
        return slots

    def audit_conflicts(
        self, days_ahead: int = CONFLICT_AUDIT_DAYS, resource_id: Optional[int] = None
    ) -> list[CommitmentConflict]:
        """
        Sweep active commitments from today through ``days_ahead`` days out and
        report every pair that overlaps on the same resource, each pair once.

        Bookings made through the engine never overlap; this catches rows that
        reached storage some other way (imports, manual fixes).
        """
        start = datetime.combine(self.clock().date(), time.min)
        end = start + timedelta(days=days_ahead + 1)
        commitments = CommitmentRepository.list_active_between(self.db, start, end, resource_id=resource_id)

        conflicts = []
        for rid, group in groupby(commitments, key=lambda c: c.resource_id):
            # Sorted by start, so anything still open when c starts overlaps it
            still_open = []
            for commitment in group:
                still_open = [o for o in still_open if o.end_at > commitment.start_at]
                for earlier in still_open:
                    conflicts.append(
                        CommitmentConflict(
                            resource_id=rid,
                            day=commitment.start_at.date(),
                            commitment_id=earlier.id,
                            window=WindowOut(start=earlier.start_at, end=earlier.end_at),
                            conflicting_commitment_id=commitment.id,
                            conflicting_window=WindowOut(start=commitment.start_at, end=commitment.end_at),
                        )
                    )
                still_open.append(commitment)

        if conflicts:
            logger.warning(
                f"⚠️ Conflict audit found {len(conflicts)} double booking(s) "
                f"in {len(commitments)} commitments up to {end.date()}"
            )
        else:
            logger.info(f"✅ Conflict audit clean: {len(commitments)} commitments up to {end.date()}")
        return conflicts
