"""Resource registry - schedulable resources and their weekly nominal hours"""

import logging
from datetime import date

from sqlalchemy.orm import Session

from ...models import Resource
from .exceptions import InvalidWindow, ResourceNotFound
from .intervals import Interval, contains, merge, split_by_day, time_of_day_window, weekday_of
from .repository import AvailabilityRepository, ResourceRepository

logger = logging.getLogger(__name__)


class ResourceRegistry:
    """Read-only view over resources and recurring availability"""

    def __init__(self, db: Session):
        self.db = db

    def get_resource(self, resource_id: int) -> Resource:
        """Get an active resource or raise ResourceNotFound"""
        resource = ResourceRepository.get_resource(self.db, resource_id)
        if resource is None or not resource.active:
            raise ResourceNotFound(resource_id)
        return resource

    def daily_windows(self, resource_id: int, day: date) -> list[Interval]:
        """Merged nominal windows (minutes of day) for the weekday of ``day``"""
        windows = []
        for row in AvailabilityRepository.get_active_for_weekday(self.db, resource_id, weekday_of(day)):
            try:
                windows.append(time_of_day_window(row.start_time, row.end_time))
            except InvalidWindow:
                logger.warning(
                    f"⚠️ Ignoring malformed availability row {row.id} for resource {resource_id}: "
                    f"{row.start_time}-{row.end_time}"
                )
        return merge(windows)

    def is_nominally_available(self, resource_id: int, window: Interval) -> bool:
        """
        True iff every calendar-day portion of ``window`` fits inside the
        resource's merged recurring availability for that weekday.
        """
        self.get_resource(resource_id)

        cache: dict[int, list[Interval]] = {}
        for day, segment in split_by_day(window):
            weekday = weekday_of(day)
            if weekday not in cache:
                cache[weekday] = self.daily_windows(resource_id, day)
            if not any(contains(nominal, segment) for nominal in cache[weekday]):
                return False
        return True
