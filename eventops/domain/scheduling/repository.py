"""Scheduling repository - Database operations for resources, blocks, commitments and holds"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import (
    ACTIVE_STATUSES,
    HOLD_ACTIVE,
    HOLD_EXPIRED,
    Block,
    Commitment,
    CommitmentHistory,
    RecurringAvailability,
    Resource,
    TemporaryHold,
)


class ResourceRepository:
    """Read access to resources"""

    @staticmethod
    def get_resource(db: Session, resource_id: int, for_update: bool = False) -> Optional[Resource]:
        """Get a resource by ID, optionally taking a row lock on it"""
        query = db.query(Resource).filter(Resource.id == resource_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def list_resources(
        db: Session, kind: Optional[str] = None, active: Optional[bool] = None
    ) -> list[Resource]:
        query = db.query(Resource)
        if kind:
            query = query.filter(Resource.kind == kind)
        if active is not None:
            query = query.filter(Resource.active == active)
        return query.order_by(Resource.name).all()


class AvailabilityRepository:
    """Recurring weekly availability rows"""

    @staticmethod
    def get_active_for_weekday(db: Session, resource_id: int, weekday: int) -> list[RecurringAvailability]:
        return (
            db.query(RecurringAvailability)
            .filter(
                RecurringAvailability.resource_id == resource_id,
                RecurringAvailability.weekday == weekday,
                RecurringAvailability.active.is_(True),
            )
            .order_by(RecurringAvailability.start_time)
            .all()
        )

    @staticmethod
    def list_for_resource(
        db: Session, resource_id: int, include_inactive: bool = False
    ) -> list[RecurringAvailability]:
        query = db.query(RecurringAvailability).filter(
            RecurringAvailability.resource_id == resource_id
        )
        if not include_inactive:
            query = query.filter(RecurringAvailability.active.is_(True))
        return query.order_by(RecurringAvailability.weekday, RecurringAvailability.start_time).all()

    @staticmethod
    def get_row(db: Session, row_id: int, resource_id: int) -> Optional[RecurringAvailability]:
        return (
            db.query(RecurringAvailability)
            .filter(
                RecurringAvailability.id == row_id,
                RecurringAvailability.resource_id == resource_id,
            )
            .first()
        )

    @staticmethod
    def create_row(db: Session, resource_id: int, **row_data) -> RecurringAvailability:
        row = RecurringAvailability(resource_id=resource_id, **row_data)
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def deactivate_row(db: Session, row: RecurringAvailability) -> RecurringAvailability:
        row.active = False
        db.commit()
        db.refresh(row)
        return row


class BlockRepository:
    """Blocking windows"""

    @staticmethod
    def get_active_in_dates(
        db: Session, resource_id: int, first_day: date, last_day: date
    ) -> list[Block]:
        """Active blocks of a resource whose inclusive date range touches [first_day, last_day]"""
        return (
            db.query(Block)
            .filter(
                Block.resource_id == resource_id,
                Block.active.is_(True),
                Block.start_date <= last_day,
                Block.end_date >= first_day,
            )
            .all()
        )

    @staticmethod
    def get_block(db: Session, block_id: int) -> Optional[Block]:
        return db.query(Block).filter(Block.id == block_id).first()

    @staticmethod
    def search_blocks(
        db: Session,
        resource_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        block_type: Optional[str] = None,
        active: Optional[bool] = None,
    ) -> list[Block]:
        query = db.query(Block)
        if resource_id is not None:
            query = query.filter(Block.resource_id == resource_id)
        if date_from:
            query = query.filter(Block.end_date >= date_from)
        if date_to:
            query = query.filter(Block.start_date <= date_to)
        if block_type:
            query = query.filter(Block.block_type == block_type)
        if active is not None:
            query = query.filter(Block.active == active)
        return query.order_by(Block.start_date, Block.resource_id).all()

    @staticmethod
    def create_block(db: Session, resource_id: int, **block_data) -> Block:
        block = Block(resource_id=resource_id, **block_data)
        db.add(block)
        db.commit()
        db.refresh(block)
        return block

    @staticmethod
    def delete_block(db: Session, block: Block) -> None:
        db.delete(block)
        db.commit()


class CommitmentRepository:
    """Commitments and their reschedule history"""

    @staticmethod
    def get_commitment(db: Session, commitment_id: int) -> Optional[Commitment]:
        return db.query(Commitment).filter(Commitment.id == commitment_id).first()

    @staticmethod
    def find_overlapping(
        db: Session,
        resource_id: int,
        start_at: datetime,
        end_at: datetime,
        exclude_id: Optional[int] = None,
    ) -> list[Commitment]:
        """Active commitments whose half-open window overlaps [start_at, end_at)"""
        query = db.query(Commitment).filter(
            Commitment.resource_id == resource_id,
            Commitment.status.in_(ACTIVE_STATUSES),
            Commitment.start_at < end_at,
            Commitment.end_at > start_at,
        )
        if exclude_id is not None:
            query = query.filter(Commitment.id != exclude_id)
        return query.order_by(Commitment.start_at).all()

    @staticmethod
    def search_commitments(
        db: Session,
        resource_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> list[Commitment]:
        query = db.query(Commitment)
        if resource_id is not None:
            query = query.filter(Commitment.resource_id == resource_id)
        if date_from:
            query = query.filter(Commitment.end_at > date_from)
        if date_to:
            query = query.filter(Commitment.start_at < date_to)
        if status:
            query = query.filter(Commitment.status == status)
        return query.order_by(Commitment.start_at).all()

    @staticmethod
    def list_active_between(
        db: Session, start_at: datetime, end_at: datetime, resource_id: Optional[int] = None
    ) -> list[Commitment]:
        """Active commitments touching [start_at, end_at), grouped by resource then start"""
        query = db.query(Commitment).filter(
            Commitment.status.in_(ACTIVE_STATUSES),
            Commitment.start_at < end_at,
            Commitment.end_at > start_at,
        )
        if resource_id is not None:
            query = query.filter(Commitment.resource_id == resource_id)
        return query.order_by(Commitment.resource_id, Commitment.start_at, Commitment.id).all()

    @staticmethod
    def add_commitment(db: Session, resource_id: int, **commitment_data) -> Commitment:
        """Stage a new commitment; the caller owns the transaction"""
        commitment = Commitment(resource_id=resource_id, **commitment_data)
        db.add(commitment)
        db.flush()
        return commitment

    @staticmethod
    def add_history_entry(db: Session, commitment_id: int, **entry_data) -> CommitmentHistory:
        """Stage a history row; the caller owns the transaction"""
        entry = CommitmentHistory(commitment_id=commitment_id, **entry_data)
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def get_history(db: Session, commitment_id: int) -> list[CommitmentHistory]:
        """Reschedule history, newest first"""
        return (
            db.query(CommitmentHistory)
            .filter(CommitmentHistory.commitment_id == commitment_id)
            .order_by(CommitmentHistory.changed_at.desc(), CommitmentHistory.id.desc())
            .all()
        )


class HoldRepository:
    """Temporary holds"""

    @staticmethod
    def get_hold(db: Session, hold_id: int) -> Optional[TemporaryHold]:
        return db.query(TemporaryHold).filter(TemporaryHold.id == hold_id).first()

    @staticmethod
    def find_live_overlapping(
        db: Session,
        resource_id: int,
        start_at: datetime,
        end_at: datetime,
        now: datetime,
        exclude_id: Optional[int] = None,
    ) -> list[TemporaryHold]:
        """Active, unexpired holds whose window overlaps [start_at, end_at)"""
        query = db.query(TemporaryHold).filter(
            TemporaryHold.resource_id == resource_id,
            TemporaryHold.status == HOLD_ACTIVE,
            TemporaryHold.expires_at > now,
            TemporaryHold.start_at < end_at,
            TemporaryHold.end_at > start_at,
        )
        if exclude_id is not None:
            query = query.filter(TemporaryHold.id != exclude_id)
        return query.order_by(TemporaryHold.start_at).all()

    @staticmethod
    def search_holds(
        db: Session,
        resource_id: Optional[int] = None,
        status: Optional[str] = None,
        created_by: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        include_expired: bool = False,
    ) -> list[TemporaryHold]:
        query = db.query(TemporaryHold)
        if resource_id is not None:
            query = query.filter(TemporaryHold.resource_id == resource_id)
        if status:
            query = query.filter(TemporaryHold.status == status)
        elif not include_expired:
            query = query.filter(TemporaryHold.status != HOLD_EXPIRED)
        if created_by:
            query = query.filter(TemporaryHold.created_by == created_by)
        if date_from:
            query = query.filter(TemporaryHold.end_at > date_from)
        if date_to:
            query = query.filter(TemporaryHold.start_at < date_to)
        return query.order_by(TemporaryHold.expires_at).all()

    @staticmethod
    def add_hold(db: Session, resource_id: int, **hold_data) -> TemporaryHold:
        """Stage a new hold; the caller owns the transaction"""
        hold = TemporaryHold(resource_id=resource_id, **hold_data)
        db.add(hold)
        db.flush()
        return hold

    @staticmethod
    def expire_lapsed(db: Session, now: datetime) -> int:
        """Flag active holds whose expiry has passed; the caller commits"""
        return (
            db.query(TemporaryHold)
            .filter(TemporaryHold.status == HOLD_ACTIVE, TemporaryHold.expires_at <= now)
            .update({TemporaryHold.status: HOLD_EXPIRED}, synchronize_session=False)
        )
