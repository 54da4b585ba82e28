"""The conflict audit sweep reports double bookings that reached storage anyway"""

from datetime import date, timedelta

import pytest
from conftest import ADMIN, OTHER_SELLER, SELLER, at

from eventops.domain.scheduling.exceptions import PermissionDenied
from eventops.domain.scheduling.repository import CommitmentRepository
from eventops.shared.validators import business_now

# The clock fixture reads 2029-12-01 09:00
AUDITED_DAY = date(2029, 12, 10)


def insert_commitment(db, resource, start, end, status="scheduled"):
    """Write straight to storage, skipping the availability check"""
    commitment = CommitmentRepository.add_commitment(db, resource.id, start_at=start, end_at=end, status=status)
    db.commit()
    return commitment


def test_overlapping_pairs_are_reported_once(service, salesperson, db):
    first = insert_commitment(db, salesperson, at(AUDITED_DAY, 10), at(AUDITED_DAY, 12))
    second = insert_commitment(db, salesperson, at(AUDITED_DAY, 11), at(AUDITED_DAY, 13))
    third = insert_commitment(db, salesperson, at(AUDITED_DAY, 11, 30), at(AUDITED_DAY, 11, 45))
    insert_commitment(db, salesperson, at(AUDITED_DAY, 13), at(AUDITED_DAY, 14))

    conflicts = service.audit_conflicts(ADMIN)

    assert [(c.commitment_id, c.conflicting_commitment_id) for c in conflicts] == [
        (first.id, second.id),
        (first.id, third.id),
        (second.id, third.id),
    ]
    assert {c.day for c in conflicts} == {AUDITED_DAY}
    assert conflicts[0].window.start == at(AUDITED_DAY, 10)
    assert conflicts[0].conflicting_window.end == at(AUDITED_DAY, 13)


def test_cancelled_past_and_out_of_horizon_rows_are_ignored(service, salesperson, db):
    insert_commitment(db, salesperson, at(AUDITED_DAY, 10), at(AUDITED_DAY, 11))
    insert_commitment(db, salesperson, at(AUDITED_DAY, 10), at(AUDITED_DAY, 11), status="cancelled")

    past = date(2029, 11, 20)
    insert_commitment(db, salesperson, at(past, 10), at(past, 11))
    insert_commitment(db, salesperson, at(past, 10), at(past, 11))

    far = date(2030, 3, 4)
    insert_commitment(db, salesperson, at(far, 10), at(far, 11))
    insert_commitment(db, salesperson, at(far, 10), at(far, 11))

    assert service.audit_conflicts(ADMIN) == []
    assert len(service.audit_conflicts(ADMIN, days_ahead=120)) == 1


def test_different_resources_never_conflict(service, salesperson, event_space, db):
    insert_commitment(db, salesperson, at(AUDITED_DAY, 10), at(AUDITED_DAY, 11))
    insert_commitment(db, event_space, at(AUDITED_DAY, 10), at(AUDITED_DAY, 11))

    assert service.audit_conflicts(ADMIN) == []


def test_overlap_across_midnight_is_reported(service, event_space, db):
    next_day = AUDITED_DAY + timedelta(days=1)
    late = insert_commitment(db, event_space, at(AUDITED_DAY, 22), at(next_day, 2))
    early = insert_commitment(db, event_space, at(next_day, 1), at(next_day, 3))

    conflicts = service.audit_conflicts(ADMIN, resource_id=event_space.id)

    assert [(c.commitment_id, c.conflicting_commitment_id, c.day) for c in conflicts] == [
        (late.id, early.id, next_day)
    ]


def test_audit_permissions(service, salesperson, db):
    insert_commitment(db, salesperson, at(AUDITED_DAY, 10), at(AUDITED_DAY, 11))
    insert_commitment(db, salesperson, at(AUDITED_DAY, 10, 30), at(AUDITED_DAY, 11, 30))

    assert len(service.audit_conflicts(SELLER, resource_id=salesperson.id)) == 1
    with pytest.raises(PermissionDenied):
        service.audit_conflicts(SELLER)
    with pytest.raises(PermissionDenied):
        service.audit_conflicts(OTHER_SELLER, resource_id=salesperson.id)


def test_conflicts_endpoint(client, salesperson, db, api_user):
    tomorrow = business_now().date() + timedelta(days=1)
    first = insert_commitment(db, salesperson, at(tomorrow, 10), at(tomorrow, 11))
    second = insert_commitment(db, salesperson, at(tomorrow, 10, 30), at(tomorrow, 12))

    api_user["user"] = ADMIN
    response = client.get("/commitments/conflicts")

    assert response.status_code == 200
    body = response.json()
    assert [(c["commitment_id"], c["conflicting_commitment_id"]) for c in body] == [(first.id, second.id)]
    assert body[0]["resource_id"] == salesperson.id
    assert body[0]["day"] == tomorrow.isoformat()

    api_user["user"] = OTHER_SELLER
    assert client.get("/commitments/conflicts").status_code == 403
    assert client.get("/commitments/conflicts", params={"days_ahead": 0}).status_code == 422
