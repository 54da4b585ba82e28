"""
Blocking store - exclusion windows per resource.

A block always wins over bookings: if an active block of a resource touches a
candidate window, that resource is unavailable no matter what else is booked.
Blocks are strictly resource-local.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional

from sqlalchemy.orm import Session

from ...models import Block
from .exceptions import BlockConflict, BlockNotFound, InvalidWindow
from .intervals import Interval, at_day, date_span, iter_days, overlaps, time_of_day_window
from .repository import BlockRepository

logger = logging.getLogger(__name__)


def block_dates(block: Block) -> Interval:
    """Inclusive stored dates as a half-open day interval"""
    return Interval(block.start_date, block.end_date + timedelta(days=1))


def block_daily_window(block: Block) -> Optional[Interval]:
    """Daily window in minutes, or None for an all-day block"""
    if block.start_time is None or block.end_time is None:
        return None
    return time_of_day_window(block.start_time, block.end_time)


def blocking_intervals(block: Block, within: Interval) -> Iterator[Interval]:
    """Absolute intervals covered by ``block`` on the days of ``within``"""
    dates = block_dates(block)
    first_day = max(dates.start, within.start)
    end_day = min(dates.end, within.end)
    if first_day >= end_day:
        return

    daily = block_daily_window(block)
    if daily is None:
        yield Interval(datetime.combine(first_day, time.min), datetime.combine(end_day, time.min))
        return

    for day in iter_days(Interval(first_day, end_day)):
        yield at_day(day, daily)


class BlockingStore:
    """Exclusion windows that pre-empt booking"""

    def __init__(self, db: Session):
        self.db = db

    def find_blocking(self, resource_id: int, window: Interval) -> list[Block]:
        """Active blocks of ``resource_id`` intersecting ``window``"""
        span = date_span(window)
        candidates = BlockRepository.get_active_in_dates(
            self.db, resource_id, span.start, span.end - timedelta(days=1)
        )
        return [
            block
            for block in candidates
            if any(overlaps(blocked, window) for blocked in blocking_intervals(block, span))
        ]

    def is_blocked(self, resource_id: int, window: Interval) -> bool:
        return bool(self.find_blocking(resource_id, window))

    def get_block(self, block_id: int) -> Block:
        block = BlockRepository.get_block(self.db, block_id)
        if not block:
            raise BlockNotFound(block_id)
        return block

    def list_blocks(self, **filters) -> list[Block]:
        return BlockRepository.search_blocks(self.db, **filters)

    def create_block(
        self,
        resource_id: int,
        start_date: date,
        end_date: date,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        block_type: str = "other",
        reason: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Block:
        """Create a block, refusing one that overlaps an existing active block"""
        new_dates = Interval(start_date, end_date + timedelta(days=1))
        if (start_time is None) != (end_time is None):
            raise InvalidWindow("Provide both start_time and end_time, or neither for a full-day block")
        new_daily = time_of_day_window(start_time, end_time) if start_time is not None else None

        existing = BlockRepository.get_active_in_dates(self.db, resource_id, start_date, end_date)
        clashing = []
        for block in existing:
            if not overlaps(block_dates(block), new_dates):
                continue
            daily = block_daily_window(block)
            if daily is None or new_daily is None or overlaps(daily, new_daily):
                clashing.append(block.id)

        if clashing:
            logger.warning(
                f"⚠️ Block for resource {resource_id} {start_date}..{end_date} clashes with {clashing}"
            )
            raise BlockConflict(clashing)

        block = BlockRepository.create_block(
            self.db,
            resource_id,
            start_date=start_date,
            end_date=end_date,
            start_time=start_time,
            end_time=end_time,
            block_type=block_type,
            reason=reason,
            created_by=created_by,
        )
        logger.info(
            f"🚫 Block {block.id} created on resource {resource_id}: {start_date}..{end_date} "
            f"{start_time or 'all day'}-{end_time or ''} ({block_type})"
        )
        return block

    def delete_block(self, block_id: int) -> None:
        """Delete permanently; blocks keep no history"""
        block = self.get_block(block_id)
        BlockRepository.delete_block(self.db, block)
        logger.info(f"🗑️ Block {block_id} deleted")
