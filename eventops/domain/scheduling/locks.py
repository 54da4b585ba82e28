"""
Per-resource critical sections.

Booking, rescheduling, cancelling and confirming all follow the same shape:
read the current state of one resource, decide, write, commit. Two workers
doing that on the same resource must not interleave, while workers on
different resources must never wait on each other.

Inside one process this is a lock per resource id, taken with a bounded wait.
Across processes the transaction is opened as a writer before anything is read:
on Postgres the resource row is locked with SELECT ... FOR UPDATE, on SQLite
(where FOR UPDATE is ignored) the transaction starts with BEGIN IMMEDIATE, which
takes the write lock for the whole file. Either way a second critical section
stalls at its opening statement until the first one commits or rolls back.
"""

import logging
from contextlib import contextmanager
from threading import Lock

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import RESOURCE_LOCK_TIMEOUT_SECONDS
from ...database import begin_write
from .exceptions import ResourceNotFound, StorageUnavailable
from .repository import ResourceRepository

logger = logging.getLogger(__name__)


class ResourceLockManager:
    """Hands out one lock per resource id"""

    def __init__(self, timeout: float = RESOURCE_LOCK_TIMEOUT_SECONDS):
        self.timeout = timeout
        self._locks: dict[int, Lock] = {}
        self._guard = Lock()

    def lock_for(self, resource_id: int) -> Lock:
        with self._guard:
            lock = self._locks.get(resource_id)
            if lock is None:
                lock = Lock()
                self._locks[resource_id] = lock
            return lock

    @contextmanager
    def hold(self, resource_id: int):
        lock = self.lock_for(resource_id)
        if not lock.acquire(timeout=self.timeout):
            logger.error(f"⏱️ Timed out after {self.timeout}s waiting for resource {resource_id} lock")
            raise StorageUnavailable(f"Resource {resource_id} is busy, please retry")
        try:
            yield
        finally:
            lock.release()


resource_locks = ResourceLockManager()


@contextmanager
def critical_section(
    db: Session,
    resource_id: int,
    locks: ResourceLockManager = resource_locks,
    require_active: bool = True,
):
    """
    Run the body as one all-or-nothing transaction scoped to ``resource_id``.

    Yields the locked Resource, which must be active unless ``require_active``
    is off. Commits when the body finishes; any exception rolls the whole
    transaction back. Database errors surface as StorageUnavailable.
    """
    with locks.hold(resource_id):
        try:
            # Drop anything read before the lock was taken
            db.expire_all()
            begin_write(db)
            resource = ResourceRepository.get_resource(db, resource_id, for_update=True)
            if resource is None or (require_active and not resource.active):
                raise ResourceNotFound(resource_id)
            yield resource
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Storage failure in critical section for resource {resource_id}: {e}")
            raise StorageUnavailable() from e
        except Exception:
            db.rollback()
            raise
