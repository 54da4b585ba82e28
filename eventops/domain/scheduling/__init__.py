"""
Scheduling Domain - Availability & Conflict-Resolution Engine

One interval-scheduling engine shared by every schedulable resource kind:
salespeople (sales meetings) and event spaces (reservations).

Structure:
```
eventops/domain/scheduling/
├── intervals.py      # Half-open interval model and day/time helpers
├── registry.py       # Resources and recurring nominal availability
├── blocking.py       # Exclusion windows (vacations, maintenance, holds)
├── commitments.py    # Bookings and their lifecycle
├── holds.py          # Temporary holds that expire unless converted
├── resolver.py       # Availability verdicts, free slots, double-booking audit
├── rescheduling.py   # Window moves with append-only history
├── locks.py          # Per-resource critical sections
├── exceptions.py     # Domain errors (mapped to HTTP in main.py)
├── repository.py     # Database queries
├── schemas.py        # Request/response models
├── service.py        # Permissions, validation, notifications
└── router.py         # HTTP endpoints
```

Commitment lifecycle:
- scheduled -> confirmed (both sides confirmed)
- scheduled / confirmed -> rescheduled (window moved, confirmations reset)
- rescheduled -> confirmed (both sides confirmed again)
- scheduled / confirmed / rescheduled -> cancelled (terminal, row kept for audit)

Hold lifecycle:
- active -> converted (booked as a commitment on the same window)
- active -> released / expired (window back on the market)

Only ``CommitmentStore.create``, ``ReschedulingCoordinator.reschedule`` and the
hold operations may put a window on a resource, and all of them run the conflict
check and the write inside the resource's critical section.
"""
