"""Tests for InvoiceService: explicit creation, generation and overdue marking."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from rental_kernel.domain.lifecycle import ContractStatus, InvoiceStatus
from rental_kernel.exceptions import (
    ContractNotFoundError,
    DuplicateInvoiceError,
    InvoiceNotFoundError,
)
from rental_kernel.models.invoice import Invoice
from rental_kernel.services.contract_service import ContractService
from rental_kernel.services.invoice_service import InvoiceService


@pytest.fixture
def invoice_service(session, deterministic_clock):
    return InvoiceService(session, deterministic_clock)


class TestCreate:
    def test_creates_pending_invoice(self, invoice_service, create_contract):
        contract = create_contract()

        invoice = invoice_service.create(contract.id, date(2024, 2, 1), "1000000")

        assert invoice.status == InvoiceStatus.PENDING
        assert invoice.amount == Decimal("1000000")
        assert invoice_service.get(invoice.id).due_date == date(2024, 2, 1)

    def test_duplicate_due_date_rejected(self, invoice_service, create_contract):
        contract = create_contract()
        invoice_service.create(contract.id, date(2024, 2, 1), Decimal("10"))

        with pytest.raises(DuplicateInvoiceError) as exc_info:
            invoice_service.create(contract.id, date(2024, 2, 1), Decimal("20"))

        assert exc_info.value.code == "DUPLICATE_INVOICE"
        assert exc_info.value.due_date == "2024-02-01"
        assert invoice_service.count_for_contract(contract.id) == 1

    def test_same_due_date_on_other_contract_is_fine(self, invoice_service, create_contract):
        first = create_contract()
        second = create_contract()

        invoice_service.create(first.id, date(2024, 2, 1), Decimal("10"))
        invoice_service.create(second.id, date(2024, 2, 1), Decimal("10"))

    def test_unknown_contract(self, invoice_service):
        with pytest.raises(ContractNotFoundError):
            invoice_service.create(uuid4(), date(2024, 2, 1), Decimal("10"))

    def test_non_positive_amount(self, invoice_service, create_contract):
        contract = create_contract()
        with pytest.raises(ValueError):
            invoice_service.create(contract.id, date(2024, 2, 1), Decimal("-1"))

    def test_get_missing(self, invoice_service):
        with pytest.raises(InvoiceNotFoundError):
            invoice_service.get(uuid4())


class TestGenerateForContract:
    def test_generation_is_idempotent(self, invoice_service, create_contract):
        contract = create_contract()

        first = invoice_service.generate_for_contract(contract.id)
        second = invoice_service.generate_for_contract(contract.id)

        assert len(first) == 3
        assert second == []
        assert invoice_service.count_for_contract(contract.id) == 3

    def test_fills_only_missing_months(self, invoice_service, create_contract):
        contract = create_contract()
        invoice_service.create(contract.id, date(2024, 3, 1), Decimal("1000000"))

        created = invoice_service.generate_for_contract(contract.id)

        assert [i.due_date for i in created] == [date(2024, 2, 1), date(2024, 3, 15)]

    def test_unknown_contract(self, invoice_service):
        with pytest.raises(ContractNotFoundError):
            invoice_service.generate_for_contract(uuid4())


class TestMarkOverdue:
    @pytest.fixture
    def active_contract(self, session, create_contract, deterministic_clock):
        contract = create_contract()
        ContractService(session, deterministic_clock).change_status(
            contract.id, ContractStatus.ACTIVE
        )
        return contract

    def _statuses(self, session, contract_id):
        rows = session.query(Invoice).filter(Invoice.contract_id == contract_id)
        return {i.due_date: InvoiceStatus(i.status) for i in rows}

    def test_flips_only_strictly_past_due(self, session, invoice_service, active_contract):
        count = invoice_service.mark_overdue(date(2024, 3, 1))

        assert count == 1
        assert self._statuses(session, active_contract.id) == {
            date(2024, 2, 1): InvoiceStatus.OVERDUE,
            date(2024, 3, 1): InvoiceStatus.PENDING,
            date(2024, 3, 15): InvoiceStatus.PENDING,
        }

    def test_repeat_run_changes_nothing(self, invoice_service, active_contract):
        assert invoice_service.mark_overdue(date(2024, 3, 2)) == 2
        assert invoice_service.mark_overdue(date(2024, 3, 2)) == 0

    def test_paid_invoices_untouched(self, session, invoice_service, active_contract):
        paid = (
            session.query(Invoice)
            .filter(Invoice.contract_id == active_contract.id)
            .filter(Invoice.due_date == date(2024, 2, 1))
            .one()
        )
        paid.status = InvoiceStatus.PAID
        session.flush()

        assert invoice_service.mark_overdue(date(2024, 3, 2)) == 1
        assert self._statuses(session, active_contract.id)[date(2024, 2, 1)] == InvoiceStatus.PAID
