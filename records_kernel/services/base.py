"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service in the kernel.  Concrete services receive a
    SQLAlchemy ``Session`` that they use via ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's
    transaction and never commit or rollback themselves.  The caller
    (``RecordsDesk``, the CLI, or the test harness) owns commit/rollback.

Failure modes:
    - If a subclass calls ``session.commit()``, a failed later step can no
      longer roll back the earlier ones (e.g. a consumed tracking number
      without its record).
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from records_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Does NOT provide query-only read models -- those belong in
          ``records_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
