"""Input normalisation shared by the scheduling schemas"""

import re
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from ..config import SCHEDULING_TIMEZONE


def validate_email(email: Optional[str]) -> Optional[str]:
    """Trim and lowercase a counterpart email; raises ValueError when it is not an address"""
    if not email:
        return email

    email = email.strip().lower()
    if not re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", email):
        raise ValueError(f"Invalid counterpart email: {email}")
    return email


def to_business_time(value: datetime, tz_name: str = SCHEDULING_TIMEZONE) -> datetime:
    """
    Normalize a timestamp to a naive datetime in the business time zone.

    Naive input is assumed to already be business-local and is returned as is.
    The scheduling engine only ever sees the naive result.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(tz_name)).replace(tzinfo=None)


def business_now(tz_name: str = SCHEDULING_TIMEZONE) -> datetime:
    """Current naive time in the business time zone"""
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)
