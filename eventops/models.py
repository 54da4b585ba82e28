from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Resource kinds
RESOURCE_KIND_PERSON = "person"  # salesperson
RESOURCE_KIND_SPACE = "space"  # event space

# Commitment lifecycle
STATUS_SCHEDULED = "scheduled"
STATUS_CONFIRMED = "confirmed"
STATUS_RESCHEDULED = "rescheduled"
STATUS_CANCELLED = "cancelled"
# Statuses that still occupy their window
ACTIVE_STATUSES = (STATUS_SCHEDULED, STATUS_CONFIRMED, STATUS_RESCHEDULED)

BLOCK_TYPES = ("vacation", "maintenance", "hold", "other")

# Temporary hold lifecycle: active -> converted / released / expired
HOLD_ACTIVE = "active"
HOLD_EXPIRED = "expired"
HOLD_CONVERTED = "converted"
HOLD_RELEASED = "released"
HOLD_STATUSES = (HOLD_ACTIVE, HOLD_EXPIRED, HOLD_CONVERTED, HOLD_RELEASED)


class Resource(Base):
    """A schedulable salesperson or event space. Administered outside this service."""

    __tablename__ = "resources"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(20), nullable=False, index=True)  # person, space
    name = Column(String(255), nullable=False)
    owner_id = Column(String(255), nullable=True, index=True)  # identity id allowed to manage it
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    availability = relationship(
        "RecurringAvailability", back_populates="resource", cascade="all, delete-orphan"
    )
    blocks = relationship("Block", back_populates="resource", cascade="all, delete-orphan")
    commitments = relationship("Commitment", back_populates="resource")
    holds = relationship("TemporaryHold", back_populates="resource")


class RecurringAvailability(Base):
    """Weekly window in which a resource is nominally bookable"""

    __tablename__ = "recurring_availability"

    id = Column(Integer, primary_key=True, index=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=False, index=True)
    weekday = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)  # 00:00 means end of day
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    resource = relationship("Resource", back_populates="availability")

    __table_args__ = (Index("ix_availability_resource_weekday", "resource_id", "weekday"),)


class Block(Base):
    """Exclusion window (vacation, maintenance, manual hold) that pre-empts booking"""

    __tablename__ = "blocks"

    id = Column(Integer, primary_key=True, index=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=False, index=True)
    # Inclusive calendar dates
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    # Both null = the entire day
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    block_type = Column(String(30), default="other", nullable=False)
    reason = Column(Text, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    resource = relationship("Resource", back_populates="blocks")

    __table_args__ = (Index("ix_blocks_resource_dates", "resource_id", "start_date", "end_date"),)


class Commitment(Base):
    """A booked meeting or reservation on a resource"""

    __tablename__ = "commitments"

    id = Column(Integer, primary_key=True, index=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=False, index=True)
    title = Column(String(255), nullable=True)
    counterpart_name = Column(String(255), nullable=True)
    counterpart_email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    # Current window, half-open [start_at, end_at)
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)

    # Status workflow: scheduled -> confirmed / rescheduled -> cancelled
    status = Column(String(20), default=STATUS_SCHEDULED, nullable=False, index=True)
    confirmed_by_resource = Column(Boolean, default=False, nullable=False)
    confirmed_by_counterpart = Column(Boolean, default=False, nullable=False)

    created_by = Column(String(255), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(String(255), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    resource = relationship("Resource", back_populates="commitments")
    history = relationship(
        "CommitmentHistory",
        back_populates="commitment",
        order_by="CommitmentHistory.id",
    )

    __table_args__ = (Index("ix_commitments_resource_window", "resource_id", "start_at", "end_at"),)


class CommitmentHistory(Base):
    """Append-only record of one reschedule"""

    __tablename__ = "commitment_history"

    id = Column(Integer, primary_key=True, index=True)
    commitment_id = Column(Integer, ForeignKey("commitments.id"), nullable=False, index=True)
    previous_start_at = Column(DateTime, nullable=False)
    previous_end_at = Column(DateTime, nullable=False)
    new_start_at = Column(DateTime, nullable=False)
    new_end_at = Column(DateTime, nullable=False)
    reason = Column(Text, nullable=True)
    changed_at = Column(DateTime, nullable=False)
    changed_by = Column(String(255), nullable=True)

    commitment = relationship("Commitment", back_populates="history")


class TemporaryHold(Base):
    """
    Provisional reservation keeping a window off the market while a proposal is
    negotiated. It occupies its window only while active and before expires_at.
    """

    __tablename__ = "temporary_holds"

    id = Column(Integer, primary_key=True, index=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=False, index=True)
    counterpart_name = Column(String(255), nullable=True)
    counterpart_email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    status = Column(String(20), default=HOLD_ACTIVE, nullable=False, index=True)
    created_by = Column(String(255), nullable=True, index=True)

    converted_commitment_id = Column(Integer, ForeignKey("commitments.id"), nullable=True)
    converted_at = Column(DateTime, nullable=True)
    released_at = Column(DateTime, nullable=True)
    released_by = Column(String(255), nullable=True)
    release_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    resource = relationship("Resource", back_populates="holds")

    __table_args__ = (Index("ix_holds_resource_window", "resource_id", "start_at", "end_at"),)
