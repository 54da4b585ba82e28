"""Pytest configuration and shared fixtures for the scheduling engine tests."""

import os
import tempfile

# Must be set before eventops modules read their configuration
os.environ.setdefault(
    "DATABASE_URL", f"sqlite:///{os.path.join(tempfile.gettempdir(), 'eventops_test_default.db')}"
)
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")
os.environ.setdefault("SCHEDULING_TIMEZONE", "America/Sao_Paulo")

from datetime import date, datetime, time  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from eventops.auth import CurrentUser, get_current_user  # noqa: E402
from eventops.database import Base, build_engine, get_db  # noqa: E402
from eventops.domain.scheduling.locks import ResourceLockManager  # noqa: E402
from eventops.domain.scheduling.service import SchedulingService  # noqa: E402
from eventops.main import app  # noqa: E402
from eventops.models import (  # noqa: E402
    RESOURCE_KIND_PERSON,
    RESOURCE_KIND_SPACE,
    RecurringAvailability,
    Resource,
)
from eventops.services.notification_service import (  # noqa: E402
    NotificationDispatcher,
    get_notification_dispatcher,
)

# 2030-01-07 is a Monday; weekday numbering is 0 = Sunday
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
SUNDAY = date(2030, 1, 6)
WEEKDAYS = (1, 2, 3, 4, 5)

ADMIN = CurrentUser(id="admin-1", role="admin")
SELLER = CurrentUser(id="seller-1", role="user")
OTHER_SELLER = CurrentUser(id="seller-2", role="user")


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute))


class RecordingNotifier:
    """Collects every event handed to the notification collaborator"""

    def __init__(self):
        self.events = []

    def notify(self, event: str, payload: dict) -> None:
        self.events.append((event, payload))

    @property
    def names(self) -> list[str]:
        return [event for event, _ in self.events]


class FailingNotifier:
    def __init__(self):
        self.calls = 0

    def notify(self, event: str, payload: dict) -> None:
        self.calls += 1
        raise RuntimeError("notification collaborator is down")


def seed_resource(
    db,
    kind: str = RESOURCE_KIND_PERSON,
    name: str = "Resource",
    owner_id: str = None,
    hours=None,
    active: bool = True,
) -> Resource:
    """Insert a resource with weekly availability ``{weekday: [(start, end), ...]}``"""
    resource = Resource(kind=kind, name=name, owner_id=owner_id, active=active)
    db.add(resource)
    db.flush()
    for weekday, windows in (hours or {}).items():
        for start, end in windows:
            db.add(
                RecurringAvailability(
                    resource_id=resource.id,
                    weekday=weekday,
                    start_time=start,
                    end_time=end,
                    active=True,
                )
            )
    db.commit()
    db.refresh(resource)
    return resource


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'scheduling.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def locks():
    return ResourceLockManager(timeout=5)


@pytest.fixture
def clock():
    return lambda: datetime(2029, 12, 1, 9, 0)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier):
    return NotificationDispatcher(notifier)


@pytest.fixture
def service(db, dispatcher, locks, clock):
    return SchedulingService(db, dispatcher, locks=locks, clock=clock)


@pytest.fixture
def salesperson(db):
    """Salesperson working Monday to Friday, 09:00-17:00"""
    return seed_resource(
        db,
        kind=RESOURCE_KIND_PERSON,
        name="Ana Souza",
        owner_id=SELLER.id,
        hours={weekday: [(time(9), time(17))] for weekday in WEEKDAYS},
    )


@pytest.fixture
def event_space(db):
    """Event space open every day from 08:00 until midnight"""
    return seed_resource(
        db,
        kind=RESOURCE_KIND_SPACE,
        name="Salão Jardim",
        owner_id="space-manager",
        hours={weekday: [(time(8), time(0))] for weekday in range(7)},
    )


@pytest.fixture
def api_user():
    """Mutable holder for the identity the API sees"""
    return {"user": SELLER}


@pytest.fixture
def client(session_factory, dispatcher, api_user):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_current_user] = lambda: api_user["user"]
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
