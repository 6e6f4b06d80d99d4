"""
Module: rental_kernel.selectors.payment_selector
Responsibility: Read-only payment listings.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from rental_kernel.domain.dtos import PaymentInfo
from rental_kernel.domain.lifecycle import PaymentStatus
from rental_kernel.models.payment import Payment
from rental_kernel.selectors.base import BaseSelector


class PaymentSelector(BaseSelector[Payment]):

    def list_for_invoice(
        self,
        invoice_id: UUID,
        status: PaymentStatus | None = None,
        include_archived: bool = True,
    ) -> list[PaymentInfo]:
        """Payments on an invoice, oldest first."""
        stmt = select(Payment).where(Payment.invoice_id == invoice_id)
        if status is not None:
            stmt = stmt.where(Payment.status == PaymentStatus(status).value)
        if not include_archived:
            stmt = stmt.where(Payment.is_archived.is_(False))
        stmt = stmt.order_by(Payment.created_at, Payment.id)
        return [PaymentInfo.from_model(p) for p in self.session.execute(stmt).scalars()]
