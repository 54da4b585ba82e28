"""Tests for booking, cancelling and confirming commitments"""

from datetime import datetime

import pytest
from conftest import ADMIN, MONDAY, OTHER_SELLER, SELLER, at
from sqlalchemy.exc import OperationalError

from eventops.domain.scheduling.commitments import CommitmentStore
from eventops.domain.scheduling.exceptions import (
    CommitmentNotFound,
    InvalidWindow,
    PermissionDenied,
    ResourceNotFound,
    SchedulingConflict,
    StorageUnavailable,
)
from eventops.domain.scheduling.locks import ResourceLockManager
from eventops.domain.scheduling.repository import CommitmentRepository
from eventops.domain.scheduling.schemas import OUTSIDE_NOMINAL_HOURS, OVERLAPPING_COMMITMENT, CommitmentCreate
from eventops.domain.scheduling.service import SchedulingService
from eventops.models import Commitment


def booking(resource, start, end, **details):
    return CommitmentCreate(resource_id=resource.id, window={"start": start, "end": end}, **details)


def test_create_commitment_is_scheduled_and_unconfirmed(service, salesperson, notifier):
    commitment = service.create_commitment(
        booking(
            salesperson,
            at(MONDAY, 10),
            at(MONDAY, 10, 30),
            title="Visita técnica",
            counterpart_name="Carla Mendes",
            counterpart_email="Carla@Example.com",
        ),
        ADMIN,
    )

    assert commitment.id is not None
    assert commitment.status == "scheduled"
    assert commitment.confirmed_by_resource is False
    assert commitment.confirmed_by_counterpart is False
    assert commitment.counterpart_email == "carla@example.com"
    assert commitment.created_by == ADMIN.id
    assert notifier.names == ["commitment.created"]


def test_overlapping_booking_is_rejected_with_reasons(service, salesperson, db):
    first = service.create_commitment(booking(salesperson, at(MONDAY, 10), at(MONDAY, 11)), ADMIN)

    with pytest.raises(SchedulingConflict) as exc_info:
        service.create_commitment(booking(salesperson, at(MONDAY, 10, 30), at(MONDAY, 11, 30)), ADMIN)

    reasons = exc_info.value.reasons
    assert [(r.code, r.commitment_id) for r in reasons] == [(OVERLAPPING_COMMITMENT, first.id)]
    assert db.query(Commitment).count() == 1


def test_booking_outside_working_hours_is_rejected(service, salesperson):
    with pytest.raises(SchedulingConflict) as exc_info:
        service.create_commitment(booking(salesperson, at(MONDAY, 18), at(MONDAY, 19)), ADMIN)

    assert [r.code for r in exc_info.value.reasons] == [OUTSIDE_NOMINAL_HOURS]


def test_back_to_back_bookings_both_succeed(service, salesperson):
    service.create_commitment(booking(salesperson, at(MONDAY, 14), at(MONDAY, 15)), ADMIN)
    second = service.create_commitment(booking(salesperson, at(MONDAY, 15), at(MONDAY, 16)), ADMIN)

    assert second.status == "scheduled"


def test_booking_on_unknown_resource(service):
    with pytest.raises(ResourceNotFound):
        service.create_commitment(
            CommitmentCreate(resource_id=404, window={"start": at(MONDAY, 10), "end": at(MONDAY, 11)}),
            ADMIN,
        )


def test_booking_in_the_past_is_rejected(service, salesperson):
    # Fixture clock is 2029-12-01 09:00
    with pytest.raises(InvalidWindow):
        service.create_commitment(
            booking(salesperson, datetime(2029, 11, 26, 10), datetime(2029, 11, 26, 11)), ADMIN
        )


def test_window_with_end_before_start_is_rejected(service, salesperson):
    with pytest.raises(InvalidWindow):
        service.create_commitment(booking(salesperson, at(MONDAY, 11), at(MONDAY, 10)), ADMIN)


def test_cancel_frees_the_window_and_is_idempotent(service, salesperson, notifier):
    commitment = service.create_commitment(booking(salesperson, at(MONDAY, 10), at(MONDAY, 11)), ADMIN)

    cancelled = service.cancel_commitment(commitment.id, SELLER, reason="Cliente desistiu")
    again = service.cancel_commitment(commitment.id, SELLER, reason="Outro motivo")

    assert cancelled.status == "cancelled"
    assert again.status == "cancelled"
    assert again.cancellation_reason == "Cliente desistiu"
    assert again.cancelled_by == SELLER.id
    assert notifier.names == ["commitment.created", "commitment.cancelled"]

    rebooked = service.create_commitment(booking(salesperson, at(MONDAY, 10), at(MONDAY, 11)), ADMIN)
    assert rebooked.id != commitment.id


def test_cancel_unknown_commitment(service):
    with pytest.raises(CommitmentNotFound):
        service.cancel_commitment(12345, ADMIN)


def test_only_owner_or_admin_can_cancel(service, salesperson):
    commitment = service.create_commitment(booking(salesperson, at(MONDAY, 10), at(MONDAY, 11)), ADMIN)

    with pytest.raises(PermissionDenied):
        service.cancel_commitment(commitment.id, OTHER_SELLER)

    assert service.get_commitment(commitment.id).status == "scheduled"


@pytest.mark.parametrize(
    "sides,expected_status",
    [
        (["resource"], "scheduled"),
        (["counterpart"], "scheduled"),
        (["resource", "counterpart"], "confirmed"),
        (["both"], "confirmed"),
    ],
)
def test_confirmation_flow(service, salesperson, sides, expected_status):
    commitment = service.create_commitment(booking(salesperson, at(MONDAY, 10), at(MONDAY, 11)), ADMIN)

    for side in sides:
        commitment = service.confirm_commitment(commitment.id, side, SELLER)

    assert commitment.status == expected_status


def test_confirming_a_cancelled_commitment_fails(service, salesperson):
    commitment = service.create_commitment(booking(salesperson, at(MONDAY, 10), at(MONDAY, 11)), ADMIN)
    service.cancel_commitment(commitment.id, ADMIN)

    with pytest.raises(CommitmentNotFound):
        service.confirm_commitment(commitment.id, "both", ADMIN)


def test_list_commitments_filters_by_day_and_status(service, salesperson):
    morning = service.create_commitment(booking(salesperson, at(MONDAY, 9), at(MONDAY, 10)), ADMIN)
    afternoon = service.create_commitment(booking(salesperson, at(MONDAY, 15), at(MONDAY, 16)), ADMIN)
    service.cancel_commitment(afternoon.id, ADMIN)

    on_monday = service.list_commitments(resource_id=salesperson.id, date_from=MONDAY, date_to=MONDAY)
    scheduled = service.list_commitments(resource_id=salesperson.id, status="scheduled")

    assert {c.id for c in on_monday} == {morning.id, afternoon.id}
    assert [c.id for c in scheduled] == [morning.id]


def test_storage_failure_leaves_nothing_behind(service, salesperson, db, monkeypatch):
    def broken_insert(db, resource_id, **data):
        raise OperationalError("INSERT INTO commitments", {}, Exception("disk I/O error"))

    monkeypatch.setattr(CommitmentRepository, "add_commitment", staticmethod(broken_insert))

    with pytest.raises(StorageUnavailable):
        service.create_commitment(booking(salesperson, at(MONDAY, 10), at(MONDAY, 11)), ADMIN)

    assert db.query(Commitment).count() == 0


def test_busy_resource_times_out_as_storage_unavailable(db, dispatcher, clock, salesperson):
    locks = ResourceLockManager(timeout=0.05)
    service = SchedulingService(db, dispatcher, locks=locks, clock=clock)

    with locks.hold(salesperson.id):
        with pytest.raises(StorageUnavailable):
            service.create_commitment(booking(salesperson, at(MONDAY, 10), at(MONDAY, 11)), ADMIN)

    # Lock released again
    commitment = service.create_commitment(booking(salesperson, at(MONDAY, 10), at(MONDAY, 11)), ADMIN)
    assert commitment.status == "scheduled"


def test_store_cancel_reports_whether_it_cancelled(service, salesperson):
    commitment = service.create_commitment(booking(salesperson, at(MONDAY, 10), at(MONDAY, 11)), ADMIN)

    first, first_changed = service.commitments.cancel(commitment.id, cancelled_by=ADMIN.id)
    second, second_changed = service.commitments.cancel(commitment.id, cancelled_by=SELLER.id)

    assert first_changed is True
    assert second_changed is False
    assert second.cancelled_by == ADMIN.id


def test_cancel_lost_to_a_concurrent_cancel_sends_no_notification(
    service, session_factory, dispatcher, locks, clock, salesperson, notifier, monkeypatch
):
    commitment = service.create_commitment(booking(salesperson, at(MONDAY, 10), at(MONDAY, 11)), ADMIN)
    other_session = session_factory()
    other = SchedulingService(other_session, dispatcher, locks=locks, clock=clock)
    original_get = CommitmentStore.get

    def get_then_cancel_elsewhere(self, commitment_id):
        found = original_get(self, commitment_id)
        # The other request cancels right after this one has read the row
        if self is service.commitments and found.status != "cancelled":
            other.commitments.cancel(commitment_id, cancelled_by=SELLER.id, reason="Cancelado em paralelo")
        return found

    monkeypatch.setattr(CommitmentStore, "get", get_then_cancel_elsewhere)
    try:
        result = service.cancel_commitment(commitment.id, ADMIN, reason="Cliente desistiu")
    finally:
        other_session.close()

    assert result.status == "cancelled"
    assert result.cancellation_reason == "Cancelado em paralelo"
    assert notifier.names == ["commitment.created"]
