"""
Module: rental_kernel.models.payment
Responsibility: ORM persistence for money received against an invoice.
Architecture position: Kernel > Models.

Invariants enforced:
    - CONFIRMED and CANCELLED are terminal (service-enforced).
    - paid_at is set exactly when status becomes CONFIRMED.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import ArchivableMixin, TrackedBase, UUIDString
from rental_kernel.domain.lifecycle import PaymentMethod, PaymentStatus


class Payment(ArchivableMixin, TrackedBase):
    """One payment; an invoice may collect several."""

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payment_invoice_status", "invoice_id", "status"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id"),
        nullable=False,
    )

    method: Mapped[PaymentMethod] = mapped_column(
        String(20),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_confirmed(self) -> bool:
        return self.status == PaymentStatus.CONFIRMED

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.amount} {self.method} ({self.status})>"
