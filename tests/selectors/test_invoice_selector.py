"""Read-side queries over invoices, payments and the archive."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from rental_kernel.domain.lifecycle import ContractStatus, InvoiceStatus, PaymentMethod, PaymentStatus
from rental_kernel.exceptions import InvoiceNotFoundError
from rental_kernel.models.contract import Contract
from rental_kernel.selectors.archive_selector import ArchiveSelector
from rental_kernel.selectors.invoice_selector import InvoiceSelector
from rental_kernel.selectors.payment_selector import PaymentSelector
from rental_kernel.services.archive_service import ArchiveService
from rental_kernel.services.contract_service import ContractService
from rental_kernel.services.invoice_service import InvoiceService
from rental_kernel.services.payment_service import PaymentService


@pytest.fixture
def activate(session, deterministic_clock):
    def _activate(contract_id):
        ContractService(session, deterministic_clock).change_status(
            contract_id, ContractStatus.ACTIVE
        )

    return _activate


class TestList:
    def test_filters_by_tenant(self, session, create_contract, activate):
        mine = create_contract()
        other = create_contract()
        activate(mine.id)
        activate(other.id)

        invoices = InvoiceSelector(session).list(tenant_id=mine.tenant_id)

        assert len(invoices) == 3
        assert {i.contract_id for i in invoices} == {mine.id}

    def test_filters_by_status(self, session, create_contract, activate):
        contract = create_contract()
        activate(contract.id)
        InvoiceService(session).mark_overdue(date(2024, 2, 2))

        overdue = InvoiceSelector(session).list(status=InvoiceStatus.OVERDUE)

        assert [i.due_date for i in overdue] == [date(2024, 2, 1)]

    def test_archived_hidden_unless_requested(
        self, session, create_contract, activate, deterministic_clock
    ):
        contract = create_contract()
        activate(contract.id)
        first = InvoiceSelector(session).list(contract_id=contract.id)[0]
        ArchiveService(session, deterministic_clock).archive_invoice(first.id)

        selector = InvoiceSelector(session)
        assert len(selector.list(contract_id=contract.id)) == 2
        assert len(selector.list(contract_id=contract.id, include_archived=True)) == 3


class TestOutstandingAmount:
    def test_subtracts_confirmed_only(self, session, create_contract, activate, deterministic_clock):
        contract = create_contract()
        activate(contract.id)
        invoice = InvoiceSelector(session).list(contract_id=contract.id)[0]
        payments = PaymentService(session, deterministic_clock)
        payments.create(invoice.id, PaymentMethod.ONLINE, Decimal("300000"))
        payments.create(invoice.id, PaymentMethod.OFFLINE, Decimal("500000"))

        assert InvoiceSelector(session).outstanding_amount(invoice.id) == Decimal("700000")

    def test_floored_at_zero(self, session, create_contract, activate, deterministic_clock):
        contract = create_contract()
        activate(contract.id)
        invoice = InvoiceSelector(session).list(contract_id=contract.id)[0]
        PaymentService(session, deterministic_clock).create(
            invoice.id, PaymentMethod.ONLINE, Decimal("1500000")
        )

        assert InvoiceSelector(session).outstanding_amount(invoice.id) == Decimal("0")

    def test_missing_invoice(self, session):
        with pytest.raises(InvoiceNotFoundError):
            InvoiceSelector(session).outstanding_amount(uuid4())


class TestSweepCandidates:
    def test_overdue_candidates_carry_tenant(self, session, create_contract, activate):
        contract = create_contract()
        activate(contract.id)

        rows = InvoiceSelector(session).overdue_candidates(date(2024, 3, 2))

        assert [r.due_date for r in rows] == [date(2024, 2, 1), date(2024, 3, 1)]
        assert {r.tenant_id for r in rows} == {contract.tenant_id}

    def test_due_on_skips_archived(self, session, create_contract, activate, deterministic_clock):
        contract = create_contract()
        activate(contract.id)
        selector = InvoiceSelector(session)
        assert len(selector.due_on(date(2024, 2, 1))) == 1

        ArchiveService(session, deterministic_clock).archive_contract(contract.id)

        assert selector.due_on(date(2024, 2, 1)) == []

    def test_active_contracts_without_invoices(self, session, create_contract):
        contract = create_contract()
        draft = create_contract()

        # Activated without generating: set the status directly.
        session.get(Contract, contract.id).status = ContractStatus.ACTIVE
        session.flush()

        assert InvoiceSelector(session).active_contracts_without_invoices() == [contract.id]
        assert draft.id not in InvoiceSelector(session).active_contracts_without_invoices()


class TestPaymentSelector:
    def test_lists_by_status(self, session, create_contract, activate, deterministic_clock):
        contract = create_contract()
        activate(contract.id)
        invoice = InvoiceSelector(session).list(contract_id=contract.id)[0]
        payments = PaymentService(session, deterministic_clock)
        payments.create(invoice.id, PaymentMethod.ONLINE, Decimal("1"))
        payments.create(invoice.id, PaymentMethod.OFFLINE, Decimal("2"))

        selector = PaymentSelector(session)
        assert len(selector.list_for_invoice(invoice.id)) == 2
        confirmed = selector.list_for_invoice(invoice.id, status=PaymentStatus.CONFIRMED)
        assert [p.amount for p in confirmed] == [Decimal("1")]


class TestArchiveSelector:
    def test_summary_counts(
        self, session, create_contract, activate, create_conversation, deterministic_clock
    ):
        contract = create_contract()
        activate(contract.id)
        create_conversation(contract.tenant_id, messages=2)
        create_contract()
        ArchiveService(session, deterministic_clock).archive_tenant(contract.tenant_id)

        summary = ArchiveSelector(session).summary()

        assert (summary.tenants.active, summary.tenants.archived) == (1, 1)
        assert (summary.contracts.active, summary.contracts.archived) == (1, 1)
        assert summary.invoices.archived == 3
        assert summary.archived_conversations == 1
        assert summary.archived_messages == 2
        assert summary.oldest_archive is not None
