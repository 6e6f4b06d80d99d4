"""
Module: rental_kernel.models.contract
Responsibility: ORM persistence for lease agreements.
Architecture position: Kernel > Models.

Invariants enforced:
    - status only moves along CONTRACT_TRANSITIONS (service-enforced).
    - start_date < end_date and amount > 0 (service-enforced on create).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import ArchivableMixin, TrackedBase, UUIDString
from rental_kernel.domain.lifecycle import ContractStatus


class Contract(ArchivableMixin, TrackedBase):
    """
    A lease of one unit to one tenant for a date span at a fixed monthly rent.

    Guarantees:
        - tenant_id and unit_id never change after creation.
        - amount is the monthly rent copied onto every generated invoice.
    """

    __tablename__ = "contracts"

    __table_args__ = (
        Index("idx_contract_tenant", "tenant_id"),
        Index("idx_contract_unit_status", "unit_id", "status"),
        Index("idx_contract_status", "status"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    unit_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("units.id"),
        nullable=False,
    )

    start_date: Mapped[date] = mapped_column(nullable=False)

    end_date: Mapped[date] = mapped_column(nullable=False)

    # Monthly rent
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[ContractStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ContractStatus.DRAFT,
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Contract {self.id} {self.start_date}..{self.end_date} ({self.status})>"
