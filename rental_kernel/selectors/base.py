"""
Module: rental_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    are the read side next to the write-side services: listings, outstanding
    amounts, sweep candidate queries and archive statistics.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain DTOs.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen dataclasses or computed
      results, NOT raw ORM model instances.
    - Session ownership: the caller owns the session and its transaction scope.
"""

from abc import ABC
from decimal import Decimal
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from rental_kernel.db.base import Base
from rental_kernel.db.types import ZERO, to_money

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        """
        Initialize the selector.

        Args:
            session: SQLAlchemy session for database operations.
        """
        self.session = session

    @staticmethod
    def _decimal(value) -> Decimal:
        """Normalize an aggregate result (driver-dependent type) to Decimal."""
        if value is None:
            return ZERO
        return to_money(str(value))
