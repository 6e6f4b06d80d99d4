"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  All concrete services receive a
    SQLAlchemy ``Session`` that they use via ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback themselves.  The caller (LeaseEngine,
    a sweep, or a test) owns commit/rollback, which is what lets contract
    creation, payment confirmation and the archive cascade each apply as a
    single atomic unit.

Failure modes:
    - If a subclass calls ``session.commit()`` mid-operation, a later
      failure leaves half of a cascade persisted.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from rental_kernel.db.base import Base
from rental_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` (and optionally a Clock) from the
        caller and uses ``session.flush()`` to persist changes within the
        active transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide list/report queries -- those belong in
          ``rental_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Initialize the service.

        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source for stamps; defaults to SystemClock.
        """
        self.session = session
        self._clock = clock or SystemClock()
