"""
Module: rental_kernel.selectors.invoice_selector
Responsibility: Read-only invoice queries: filtered listings, outstanding
    amount per invoice, and the candidate sets the background sweeps act on.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from rental_kernel.domain.dtos import InvoiceInfo
from rental_kernel.domain.lifecycle import ContractStatus, InvoiceStatus, PaymentStatus
from rental_kernel.exceptions import InvoiceNotFoundError
from rental_kernel.models.contract import Contract
from rental_kernel.models.invoice import Invoice
from rental_kernel.models.payment import Payment
from rental_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class InvoiceDueRow:
    """An invoice joined with the tenant who owes it."""

    invoice_id: UUID
    contract_id: UUID
    tenant_id: UUID
    due_date: date
    amount: Decimal
    status: InvoiceStatus
    is_archived: bool = False


class InvoiceSelector(BaseSelector[Invoice]):
    """
    Selector for invoices.

    Guarantees:
        - Listings are ordered by due_date, then id.
        - Amounts are Decimal.
    """

    def list(
        self,
        tenant_id: UUID | None = None,
        contract_id: UUID | None = None,
        status: InvoiceStatus | None = None,
        include_archived: bool = False,
    ) -> list[InvoiceInfo]:
        """
        List invoices.

        Args:
            tenant_id: Only invoices of this tenant's contracts.
            contract_id: Only invoices of this contract.
            status: Only invoices in this status.
            include_archived: Include archived invoices (default False).
        """
        stmt = select(Invoice)
        if tenant_id is not None:
            stmt = stmt.join(Contract, Contract.id == Invoice.contract_id).where(
                Contract.tenant_id == tenant_id
            )
        if contract_id is not None:
            stmt = stmt.where(Invoice.contract_id == contract_id)
        if status is not None:
            stmt = stmt.where(Invoice.status == InvoiceStatus(status).value)
        if not include_archived:
            stmt = stmt.where(Invoice.is_archived.is_(False))
        stmt = stmt.order_by(Invoice.due_date, Invoice.id)
        return [InvoiceInfo.from_model(i) for i in self.session.execute(stmt).scalars()]

    def outstanding_amount(self, invoice_id: UUID) -> Decimal:
        """
        Invoice amount minus confirmed payments, floored at zero.

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist.
        """
        amount = self.session.execute(
            select(Invoice.amount).where(Invoice.id == invoice_id)
        ).scalar_one_or_none()
        if amount is None:
            raise InvoiceNotFoundError(str(invoice_id))

        paid = self._decimal(
            self.session.execute(
                select(func.sum(Payment.amount))
                .where(Payment.invoice_id == invoice_id)
                .where(Payment.status == PaymentStatus.CONFIRMED.value)
            ).scalar_one()
        )
        remaining = self._decimal(amount) - paid
        return remaining if remaining > 0 else self._decimal(0)

    def _due_rows(self, stmt) -> list[InvoiceDueRow]:
        rows = self.session.execute(stmt).all()
        return [
            InvoiceDueRow(
                invoice_id=row.id,
                contract_id=row.contract_id,
                tenant_id=row.tenant_id,
                due_date=row.due_date,
                amount=self._decimal(row.amount),
                status=InvoiceStatus(row.status),
                is_archived=bool(row.is_archived),
            )
            for row in rows
        ]

    def _due_select(self):
        return (
            select(
                Invoice.id,
                Invoice.contract_id,
                Contract.tenant_id,
                Invoice.due_date,
                Invoice.amount,
                Invoice.status,
                Invoice.is_archived,
            )
            .join(Contract, Contract.id == Invoice.contract_id)
        )

    def overdue_candidates(self, as_of: date) -> list[InvoiceDueRow]:
        """PENDING invoices due strictly before ``as_of`` (what the overdue flip will touch)."""
        stmt = (
            self._due_select()
            .where(Invoice.status == InvoiceStatus.PENDING.value)
            .where(Invoice.due_date < as_of)
            .order_by(Invoice.due_date, Invoice.id)
        )
        return self._due_rows(stmt)

    def due_on(self, due_date: date) -> list[InvoiceDueRow]:
        """Live PENDING invoices due exactly on ``due_date``."""
        stmt = (
            self._due_select()
            .where(Invoice.status == InvoiceStatus.PENDING.value)
            .where(Invoice.due_date == due_date)
            .where(Invoice.is_archived.is_(False))
            .order_by(Invoice.id)
        )
        return self._due_rows(stmt)

    def active_contracts_without_invoices(self) -> list[UUID]:
        """ACTIVE, non-archived contracts that have no invoice at all."""
        has_invoice = select(Invoice.id).where(Invoice.contract_id == Contract.id).exists()
        stmt = (
            select(Contract.id)
            .where(Contract.status == ContractStatus.ACTIVE.value)
            .where(Contract.is_archived.is_(False))
            .where(~has_invoice)
            .order_by(Contract.id)
        )
        return list(self.session.execute(stmt).scalars())
