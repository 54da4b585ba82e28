"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...models import BLOCK_TYPES
from ...shared.validators import to_business_time, validate_email
from .intervals import Interval

# Conflict reason codes
OUTSIDE_NOMINAL_HOURS = "outside_nominal_hours"
BLOCKED = "blocked"
OVERLAPPING_COMMITMENT = "overlapping_commitment"
HELD = "held"


class WindowIn(BaseModel):
    """Absolute window; aware timestamps are converted to business-local time"""

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def normalize_zone(cls, v):
        return to_business_time(v)

    def to_interval(self) -> Interval:
        return Interval(self.start, self.end)


class WindowOut(BaseModel):
    start: datetime
    end: datetime

    @classmethod
    def from_interval(cls, interval: Interval) -> "WindowOut":
        return cls(start=interval.start, end=interval.end)


class ConflictReason(BaseModel):
    code: str
    commitment_id: Optional[int] = None
    block_id: Optional[int] = None
    hold_id: Optional[int] = None

    @classmethod
    def outside_nominal_hours(cls) -> "ConflictReason":
        return cls(code=OUTSIDE_NOMINAL_HOURS)

    @classmethod
    def blocked(cls, block_id: Optional[int] = None) -> "ConflictReason":
        return cls(code=BLOCKED, block_id=block_id)

    @classmethod
    def overlapping_commitment(cls, commitment_id: int) -> "ConflictReason":
        return cls(code=OVERLAPPING_COMMITMENT, commitment_id=commitment_id)

    @classmethod
    def held(cls, hold_id: int) -> "ConflictReason":
        return cls(code=HELD, hold_id=hold_id)


class Verdict(BaseModel):
    available: bool
    reasons: list[ConflictReason] = []

    def has(self, code: str) -> bool:
        return any(r.code == code for r in self.reasons)


class AvailabilityCheckRequest(BaseModel):
    resource_id: int
    window: WindowIn


class SlotSuggestionRequest(BaseModel):
    resource_id: int
    day: date
    duration_minutes: Optional[int] = Field(default=None, gt=0, le=24 * 60)


class SlotSuggestionResponse(BaseModel):
    resource_id: int
    day: date
    duration_minutes: int
    slots: list[WindowOut]


class CommitmentCreate(BaseModel):
    """Schema for booking a window on a resource"""

    resource_id: int
    window: WindowIn
    title: Optional[str] = None
    counterpart_name: Optional[str] = None
    counterpart_email: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("counterpart_email")
    @classmethod
    def validate_counterpart_email(cls, v):
        if v:
            return validate_email(v)
        return v


class RescheduleRequest(BaseModel):
    new_window: WindowIn
    reason: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class ConfirmRequest(BaseModel):
    by: Literal["resource", "counterpart", "both"]


class ConfirmationFlags(BaseModel):
    by_resource: bool
    by_counterpart: bool


class CommitmentResponse(BaseModel):
    id: int
    resource_id: int
    window: WindowOut
    status: str
    counterpart_confirmed: ConfirmationFlags
    title: Optional[str] = None
    counterpart_name: Optional[str] = None
    counterpart_email: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CommitmentConflict(BaseModel):
    """Two active commitments found overlapping on the same resource"""

    resource_id: int
    day: date
    commitment_id: int
    window: WindowOut
    conflicting_commitment_id: int
    conflicting_window: WindowOut


class HistoryEntryResponse(BaseModel):
    id: int
    commitment_id: int
    previous_window: WindowOut
    new_window: WindowOut
    reason: Optional[str] = None
    changed_at: datetime
    changed_by: Optional[str] = None


class BlockCreate(BaseModel):
    """Schema for blocking a resource; omit both times to block whole days"""

    resource_id: int
    start_date: date
    end_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    block_type: str = "other"
    reason: Optional[str] = None

    @field_validator("block_type")
    @classmethod
    def validate_block_type(cls, v):
        if v not in BLOCK_TYPES:
            raise ValueError(f"block_type must be one of {', '.join(BLOCK_TYPES)}")
        return v


class BlockResponse(BaseModel):
    id: int
    resource_id: int
    start_date: date
    end_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    block_type: str
    reason: Optional[str] = None
    active: bool
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AvailabilityRowCreate(BaseModel):
    weekday: int = Field(ge=0, le=6)  # 0 = Sunday
    start_time: time
    end_time: time


class AvailabilityRowResponse(BaseModel):
    id: int
    resource_id: int
    weekday: int
    start_time: time
    end_time: time
    active: bool

    class Config:
        from_attributes = True


class ResourceResponse(BaseModel):
    id: int
    kind: str
    name: str
    owner_id: Optional[str] = None
    active: bool

    class Config:
        from_attributes = True


class HoldCreate(BaseModel):
    """Schema for holding a window while a proposal is negotiated"""

    resource_id: int
    window: WindowIn
    counterpart_name: Optional[str] = None
    counterpart_email: Optional[str] = None
    notes: Optional[str] = None
    # Defaults to DEFAULT_HOLD_HOURS
    hold_hours: Optional[int] = Field(default=None, gt=0, le=24 * 30)

    @field_validator("counterpart_email")
    @classmethod
    def validate_counterpart_email(cls, v):
        if v:
            return validate_email(v)
        return v


class HoldExtendRequest(BaseModel):
    hours: int = Field(gt=0, le=24 * 30)


class HoldReleaseRequest(BaseModel):
    reason: Optional[str] = None


class HoldConvertRequest(BaseModel):
    title: Optional[str] = None
    notes: Optional[str] = None


class HoldResponse(BaseModel):
    id: int
    resource_id: int
    window: WindowOut
    status: str
    expires_at: datetime
    remaining_minutes: int
    counterpart_name: Optional[str] = None
    counterpart_email: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    converted_commitment_id: Optional[int] = None
    converted_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    release_reason: Optional[str] = None
    created_at: Optional[datetime] = None


class HoldConversionResponse(BaseModel):
    hold: HoldResponse
    commitment: CommitmentResponse
