"""
flow_kernel.services.base -- Shared plumbing for the host services.

Services wrap the pure engine with persistence.  Each one is built on a
caller-owned ``Session`` and a ``Clock``; it writes with ``flush()`` and
leaves commit and rollback to the caller (``session_scope()``, the CLI or
the test harness).  Authorization is out of scope: actor ids are recorded
as given.
"""

from abc import ABC
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from flow_kernel.domain.clock import Clock, SystemClock
from flow_kernel.exceptions import OptimisticLockError


class BaseService(ABC):
    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    def _flush_versioned(self, entity_type: str, entity_id: UUID | str) -> None:
        """Flush rows guarded by a version counter.

        Raises:
            OptimisticLockError: Another transaction committed the row first.
        """
        try:
            self.session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError(entity_type, str(entity_id)) from exc


def parse_uuid(value: UUID | str) -> UUID | None:
    """An id received from a caller as a UUID; ``None`` when it is not one."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None
