"""
Temporary holds - provisional reservations that keep a window off the market
while a proposal is negotiated.

A hold blocks bookings on its window until it is converted into a commitment,
released, or reaches ``expires_at``. Expiry is lazy: a hold past its deadline
stops counting at once, and its row is flagged ``expired`` the next time holds
are read.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...models import HOLD_ACTIVE, HOLD_CONVERTED, HOLD_EXPIRED, HOLD_RELEASED, Commitment, TemporaryHold
from ...shared.validators import business_now
from .commitments import CommitmentStore
from .exceptions import HoldNotActive, HoldNotFound, SchedulingConflict
from .intervals import Interval
from .locks import ResourceLockManager, critical_section, resource_locks
from .repository import HoldRepository
from .resolver import ConflictResolver

logger = logging.getLogger(__name__)


class HoldStore:
    def __init__(
        self,
        db: Session,
        locks: ResourceLockManager = resource_locks,
        clock: Callable[[], datetime] = business_now,
    ):
        self.db = db
        self.locks = locks
        self.clock = clock

    def is_live(self, hold: TemporaryHold) -> bool:
        return hold.status == HOLD_ACTIVE and hold.expires_at > self.clock()

    def get(self, hold_id: int) -> TemporaryHold:
        hold = HoldRepository.get_hold(self.db, hold_id)
        if not hold:
            raise HoldNotFound(hold_id)
        if hold.status == HOLD_ACTIVE and not self.is_live(hold):
            hold.status = HOLD_EXPIRED
            self.db.commit()
            logger.info(f"⌛ Hold {hold_id} expired at {hold.expires_at}")
        return hold

    def _get_live(self, hold_id: int) -> TemporaryHold:
        """Re-read inside a critical section; anything but a live hold is rejected"""
        hold = HoldRepository.get_hold(self.db, hold_id)
        if not hold:
            raise HoldNotFound(hold_id)
        if not self.is_live(hold):
            status = HOLD_EXPIRED if hold.status == HOLD_ACTIVE else hold.status
            raise HoldNotActive(hold_id, status)
        return hold

    def expire_lapsed(self) -> int:
        expired = HoldRepository.expire_lapsed(self.db, self.clock())
        self.db.commit()
        if expired:
            logger.info(f"⌛ Flagged {expired} lapsed hold(s) as expired")
        return expired

    def search(self, **filters) -> list[TemporaryHold]:
        self.expire_lapsed()
        return HoldRepository.search_holds(self.db, **filters)

    def place(self, resource_id: int, window: Interval, hours: int, **details) -> TemporaryHold:
        """Hold ``window`` for ``hours``; fails with SchedulingConflict like a booking would"""
        with critical_section(self.db, resource_id, self.locks):
            verdict = ConflictResolver(self.db, clock=self.clock).check_availability(resource_id, window)
            if not verdict.available:
                logger.warning(
                    f"⚠️ Hold rejected on resource {resource_id} {window.start}..{window.end}: "
                    f"{[r.code for r in verdict.reasons]}"
                )
                raise SchedulingConflict(verdict.reasons)

            hold = HoldRepository.add_hold(
                self.db,
                resource_id,
                start_at=window.start,
                end_at=window.end,
                expires_at=self.clock() + timedelta(hours=hours),
                status=HOLD_ACTIVE,
                **details,
            )

        logger.info(
            f"📌 Hold {hold.id} placed on resource {resource_id}: {window.start}..{window.end} "
            f"until {hold.expires_at}"
        )
        return hold

    def extend(self, hold_id: int, hours: int) -> TemporaryHold:
        """Push the expiry of a live hold ``hours`` further out"""
        hold = self.get(hold_id)
        with critical_section(self.db, hold.resource_id, self.locks, require_active=False):
            hold = self._get_live(hold_id)
            hold.expires_at = hold.expires_at + timedelta(hours=hours)

        logger.info(f"⏳ Hold {hold_id} extended by {hours}h, now expires at {hold.expires_at}")
        return hold

    def release(
        self, hold_id: int, released_by: Optional[str] = None, reason: Optional[str] = None
    ) -> TemporaryHold:
        """Give the window back. Releasing twice is a no-op."""
        hold = self.get(hold_id)
        if hold.status == HOLD_RELEASED:
            return hold

        with critical_section(self.db, hold.resource_id, self.locks, require_active=False):
            hold = HoldRepository.get_hold(self.db, hold_id)
            if hold.status != HOLD_RELEASED:
                self._get_live(hold_id)
                hold.status = HOLD_RELEASED
                hold.released_at = self.clock()
                hold.released_by = released_by
                hold.release_reason = reason

        logger.info(f"🔓 Hold {hold_id} released by {released_by or 'system'}")
        return hold

    def convert(self, hold_id: int, **details) -> tuple[TemporaryHold, Commitment]:
        """
        Turn a live hold into a commitment on the same window, in one transaction.
        The hold itself does not count against the booking; everything else does.
        """
        hold = self.get(hold_id)
        with critical_section(self.db, hold.resource_id, self.locks):
            hold = self._get_live(hold_id)
            commitment = CommitmentStore(self.db, locks=self.locks, clock=self.clock).book(
                hold.resource_id,
                Interval(hold.start_at, hold.end_at),
                exclude_hold_id=hold.id,
                counterpart_name=hold.counterpart_name,
                counterpart_email=hold.counterpart_email,
                **details,
            )
            hold.status = HOLD_CONVERTED
            hold.converted_commitment_id = commitment.id
            hold.converted_at = self.clock()

        logger.info(f"✅ Hold {hold_id} converted into commitment {commitment.id}")
        return hold, commitment
