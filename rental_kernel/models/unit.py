"""
Module: rental_kernel.models.unit
Responsibility: ORM persistence for leasable units and their occupancy state.
Architecture position: Kernel > Models.  May import from db/ and the pure
    domain status enums only.

Invariants enforced:
    - status is BUSY iff a DRAFT or ACTIVE contract references the unit.
      Maintained by ContractService inside the same transaction as the
      contract mutation; callers never set status directly.
"""

from decimal import Decimal

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import TrackedBase
from rental_kernel.domain.lifecycle import UnitStatus


class Unit(TrackedBase):
    """A leasable apartment, office or room."""

    __tablename__ = "units"

    __table_args__ = (
        Index("idx_unit_status", "status"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    monthly_price: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    status: Mapped[UnitStatus] = mapped_column(
        String(20),
        nullable=False,
        default=UnitStatus.FREE,
    )

    floor: Mapped[int | None] = mapped_column(
        nullable=True,
    )

    area: Mapped[Decimal | None] = mapped_column(
        nullable=True,
    )

    @property
    def is_busy(self) -> bool:
        return self.status == UnitStatus.BUSY

    def __repr__(self) -> str:
        return f"<Unit {self.name} ({self.status})>"
