"""
Module: rental_kernel.models.invoice
Responsibility: ORM persistence for monthly rent bills.
Architecture position: Kernel > Models.

Invariants enforced:
    - At most one invoice per (contract_id, due_date) (uq_invoice_contract_due).
    - PAID is terminal; it is written only by PaymentService.confirm.
    - OVERDUE is written only by the overdue sweep.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import ArchivableMixin, TrackedBase, UUIDString
from rental_kernel.domain.lifecycle import InvoiceStatus


class Invoice(ArchivableMixin, TrackedBase):
    """A bill for one month of one contract."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("contract_id", "due_date", name="uq_invoice_contract_due"),
        Index("idx_invoice_status_due", "status", "due_date"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id"),
        nullable=False,
    )

    due_date: Mapped[date] = mapped_column(nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[InvoiceStatus] = mapped_column(
        String(20),
        nullable=False,
        default=InvoiceStatus.PENDING,
    )

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID

    def __repr__(self) -> str:
        return f"<Invoice {self.id} due {self.due_date} ({self.status})>"
