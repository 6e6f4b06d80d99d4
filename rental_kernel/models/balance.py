"""
Module: rental_kernel.models.balance
Responsibility: ORM persistence for the per-tenant running balance.
Architecture position: Kernel > Models.

Invariants enforced:
    - One row per tenant (uq_balance_tenant).  BalanceService relies on the
      constraint to resolve concurrent first-credit races.
    - current only grows through confirmed payments or an explicit reset.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import TrackedBase, UUIDString


class Balance(TrackedBase):
    __tablename__ = "balances"

    __table_args__ = (
        UniqueConstraint("tenant_id", name="uq_balance_tenant"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    current: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    def __repr__(self) -> str:
        return f"<Balance tenant={self.tenant_id} current={self.current}>"
