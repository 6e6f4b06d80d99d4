"""
InvoiceService -- invoice creation, monthly generation and overdue marking.

Responsibility:
    Persists the schedule computed by ``rental_kernel.domain.billing`` for a
    contract, creates single invoices explicitly, and applies the bulk
    PENDING -> OVERDUE flip used by the overdue sweep.

Architecture position:
    Kernel > Services.  Called by ContractService on DRAFT -> ACTIVE, by the
    MissingInvoiceBackfill and OverdueSweep, and by the LeaseEngine facade.

Invariants enforced:
    - Unique (contract_id, due_date): generation skips dates already
      invoiced; explicit creation raises DuplicateInvoiceError.
    - The overdue flip touches PENDING rows only, so PAID is never
      overwritten and a repeat run changes nothing.

Failure modes:
    - ContractNotFoundError if the contract doesn't exist.
    - DuplicateInvoiceError on an explicit duplicate, or when a concurrent
      generator won the race for the same due date.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from rental_kernel.db.types import to_positive_money
from rental_kernel.domain.billing import build_schedule
from rental_kernel.domain.dtos import InvoiceInfo
from rental_kernel.domain.lifecycle import InvoiceStatus
from rental_kernel.exceptions import (
    ContractNotFoundError,
    DuplicateInvoiceError,
    InvoiceNotFoundError,
)
from rental_kernel.logging_config import get_logger
from rental_kernel.models.contract import Contract
from rental_kernel.models.invoice import Invoice
from rental_kernel.services.base import BaseService

logger = get_logger("services.invoice")


class InvoiceService(BaseService[Invoice]):
    """
    Writes invoices.

    Guarantees:
        - ``generate_for_contract`` is idempotent: a second call for the
          same contract creates nothing.
        - Every generated invoice is PENDING at the contract's monthly amount.
    """

    def _get_by_id(self, invoice_id: UUID) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def _get_for_update(self, invoice_id: UUID) -> Invoice:
        """Get ORM Invoice with row lock (payment confirmation, archive)."""
        invoice = self.session.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def get(self, invoice_id: UUID) -> InvoiceInfo:
        return InvoiceInfo.from_model(self._get_by_id(invoice_id))

    def count_for_contract(self, contract_id: UUID) -> int:
        return self.session.execute(
            select(func.count(Invoice.id)).where(Invoice.contract_id == contract_id)
        ).scalar_one()

    def _existing_due_dates(self, contract_id: UUID) -> frozenset[date]:
        rows = self.session.execute(
            select(Invoice.due_date).where(Invoice.contract_id == contract_id)
        ).scalars()
        return frozenset(rows)

    def create(
        self,
        contract_id: UUID,
        due_date: date,
        amount: Decimal | str | int,
    ) -> InvoiceInfo:
        """
        Create one PENDING invoice explicitly.

        Raises:
            ContractNotFoundError: If the contract doesn't exist.
            DuplicateInvoiceError: If the contract already has an invoice
                due on ``due_date``.
            ValueError: If amount is not positive.
        """
        value = to_positive_money(amount)
        if self.session.get(Contract, contract_id) is None:
            raise ContractNotFoundError(str(contract_id))

        if due_date in self._existing_due_dates(contract_id):
            logger.warning(
                "invoice_duplicate_rejected",
                extra={"contract_id": str(contract_id), "due_date": due_date.isoformat()},
            )
            raise DuplicateInvoiceError(str(contract_id), due_date.isoformat())

        invoice = Invoice(
            contract_id=contract_id,
            due_date=due_date,
            amount=value,
            status=InvoiceStatus.PENDING,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(invoice)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateInvoiceError(str(contract_id), due_date.isoformat())

        logger.info(
            "invoice_created",
            extra={
                "invoice_id": str(invoice.id),
                "contract_id": str(contract_id),
                "due_date": due_date.isoformat(),
                "amount": str(value),
            },
        )
        return InvoiceInfo.from_model(invoice)

    def generate_for_contract(self, contract_id: UUID) -> list[InvoiceInfo]:
        """
        Create the missing monthly invoices for a contract.

        Walks the contract span month by month (see ``build_schedule``) and
        inserts a PENDING invoice for every due date not yet invoiced.

        Returns:
            The invoices created by this call, ordered by due date.

        Raises:
            ContractNotFoundError: If the contract doesn't exist.
        """
        contract = self.session.get(Contract, contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))

        schedule = build_schedule(
            contract.start_date,
            contract.end_date,
            contract.amount,
            self._existing_due_dates(contract_id),
        )

        created: list[Invoice] = []
        for installment in schedule:
            invoice = Invoice(
                contract_id=contract_id,
                due_date=installment.due_date,
                amount=installment.amount,
                status=InvoiceStatus.PENDING,
            )
            self.session.add(invoice)
            created.append(invoice)
        self.session.flush()

        logger.info(
            "invoices_generated",
            extra={
                "contract_id": str(contract_id),
                "count": len(created),
                "first_due": created[0].due_date.isoformat() if created else None,
                "last_due": created[-1].due_date.isoformat() if created else None,
            },
        )
        return [InvoiceInfo.from_model(i) for i in created]

    def mark_overdue(self, as_of: date) -> int:
        """
        Flip every PENDING invoice due strictly before ``as_of`` to OVERDUE.

        One bulk UPDATE; PAID and OVERDUE rows are never touched, so the
        operation is idempotent.  Archived invoices are included.

        Returns:
            Number of invoices changed.
        """
        result = self.session.execute(
            update(Invoice)
            .where(Invoice.status == InvoiceStatus.PENDING.value)
            .where(Invoice.due_date < as_of)
            .values(status=InvoiceStatus.OVERDUE.value)
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0
        if count:
            # Bulk UPDATE bypasses the identity map.
            self.session.expire_all()

        logger.info(
            "invoices_marked_overdue",
            extra={"as_of": as_of.isoformat(), "count": count},
        )
        return count
