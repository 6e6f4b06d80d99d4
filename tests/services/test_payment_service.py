"""
Tests for PaymentService.

Tests cover:
1. ONLINE auto-confirmation and OFFLINE pending payments
2. Invoice PAID when the confirmed sum covers the amount (exact and partial)
3. Idempotent confirmation (balance credited once)
4. Cancelled payments can never be confirmed
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from rental_kernel.domain.lifecycle import (
    ContractStatus,
    InvoiceStatus,
    PaymentMethod,
    PaymentStatus,
)
from rental_kernel.exceptions import (
    InvalidTransitionError,
    InvoiceNotFoundError,
    PaymentCancelledError,
    PaymentNotFoundError,
)
from rental_kernel.selectors.invoice_selector import InvoiceSelector
from rental_kernel.services.balance_service import BalanceService
from rental_kernel.services.contract_service import ContractService
from rental_kernel.services.invoice_service import InvoiceService
from rental_kernel.services.payment_service import PaymentService


@pytest.fixture
def payment_service(session, deterministic_clock):
    return PaymentService(session, deterministic_clock)


@pytest.fixture
def invoice(session, create_contract, deterministic_clock):
    """First invoice (due 2024-02-01, 1,000,000) of an ACTIVE contract."""
    contract = create_contract()
    ContractService(session, deterministic_clock).change_status(
        contract.id, ContractStatus.ACTIVE
    )
    return InvoiceSelector(session).list(contract_id=contract.id)[0]


def _tenant_of(session, invoice):
    return ContractService(session).get(invoice.contract_id).tenant_id


def _balance(session, invoice) -> Decimal:
    return BalanceService(session).get(_tenant_of(session, invoice)).current


class TestCreate:
    def test_offline_payment_stays_pending(self, session, payment_service, invoice):
        payment = payment_service.create(invoice.id, PaymentMethod.OFFLINE, Decimal("1000000"))

        assert payment.status == PaymentStatus.PENDING
        assert payment.paid_at is None
        assert InvoiceService(session).get(invoice.id).status == InvoiceStatus.PENDING
        assert _balance(session, invoice) == Decimal("0")

    def test_online_payment_is_confirmed_immediately(
        self, session, payment_service, invoice, deterministic_clock
    ):
        payment = payment_service.create(invoice.id, PaymentMethod.ONLINE, Decimal("1000000"))

        assert payment.status == PaymentStatus.CONFIRMED
        assert payment.paid_at == deterministic_clock.now()
        assert InvoiceService(session).get(invoice.id).status == InvoiceStatus.PAID
        assert _balance(session, invoice) == Decimal("1000000")

    def test_method_accepts_string(self, payment_service, invoice):
        payment = payment_service.create(invoice.id, "OFFLINE", "10")
        assert payment.method == PaymentMethod.OFFLINE

    def test_unknown_invoice(self, payment_service):
        with pytest.raises(InvoiceNotFoundError):
            payment_service.create(uuid4(), PaymentMethod.OFFLINE, Decimal("10"))

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), "-1"])
    def test_non_positive_amount(self, payment_service, invoice, amount):
        with pytest.raises(ValueError):
            payment_service.create(invoice.id, PaymentMethod.OFFLINE, amount)

    def test_float_amount(self, payment_service, invoice):
        with pytest.raises(TypeError):
            payment_service.create(invoice.id, PaymentMethod.OFFLINE, 10.0)


class TestConfirm:
    def test_exact_amount_marks_invoice_paid(self, session, payment_service, invoice):
        payment = payment_service.create(invoice.id, PaymentMethod.OFFLINE, Decimal("1000000"))

        confirmed = payment_service.confirm(payment.id)

        assert confirmed.status == PaymentStatus.CONFIRMED
        assert InvoiceService(session).get(invoice.id).status == InvoiceStatus.PAID
        assert _balance(session, invoice) == Decimal("1000000")

    def test_partial_payments_accumulate(self, session, payment_service, invoice):
        first = payment_service.create(invoice.id, PaymentMethod.OFFLINE, Decimal("400000"))
        second = payment_service.create(invoice.id, PaymentMethod.OFFLINE, Decimal("600000"))

        payment_service.confirm(first.id)
        assert InvoiceService(session).get(invoice.id).status == InvoiceStatus.PENDING
        assert payment_service.confirmed_total(invoice.id) == Decimal("400000")

        payment_service.confirm(second.id)
        assert InvoiceService(session).get(invoice.id).status == InvoiceStatus.PAID
        assert _balance(session, invoice) == Decimal("1000000")

    def test_overpayment_still_paid_and_fully_credited(self, session, payment_service, invoice):
        payment_service.create(invoice.id, PaymentMethod.ONLINE, Decimal("1200000"))

        assert InvoiceService(session).get(invoice.id).status == InvoiceStatus.PAID
        assert _balance(session, invoice) == Decimal("1200000")

    def test_pending_payments_do_not_count(self, session, payment_service, invoice):
        payment_service.create(invoice.id, PaymentMethod.OFFLINE, Decimal("1000000"))

        assert payment_service.confirmed_total(invoice.id) == Decimal("0")
        assert InvoiceService(session).get(invoice.id).status == InvoiceStatus.PENDING

    def test_double_confirm_credits_once(self, session, payment_service, invoice, captured_logs):
        payment = payment_service.create(invoice.id, PaymentMethod.OFFLINE, Decimal("1000000"))

        payment_service.confirm(payment.id)
        again = payment_service.confirm(payment.id)

        assert again.status == PaymentStatus.CONFIRMED
        assert _balance(session, invoice) == Decimal("1000000")
        messages = [r["message"] for r in captured_logs()]
        assert messages.count("payment_confirmed") == 1
        assert "payment_already_confirmed" in messages

    def test_overdue_invoice_becomes_paid(self, session, payment_service, invoice):
        InvoiceService(session).mark_overdue(date(2024, 2, 2))
        assert InvoiceService(session).get(invoice.id).status == InvoiceStatus.OVERDUE

        payment_service.create(invoice.id, PaymentMethod.ONLINE, Decimal("1000000"))

        assert InvoiceService(session).get(invoice.id).status == InvoiceStatus.PAID

    def test_cancelled_payment_cannot_be_confirmed(self, session, payment_service, invoice):
        payment = payment_service.create(invoice.id, PaymentMethod.OFFLINE, Decimal("1000000"))
        payment_service.cancel(payment.id)

        with pytest.raises(PaymentCancelledError) as exc_info:
            payment_service.confirm(payment.id)

        assert exc_info.value.code == "PAYMENT_CANCELLED"
        assert payment_service.get(payment.id).status == PaymentStatus.CANCELLED
        assert _balance(session, invoice) == Decimal("0")

    def test_missing_payment(self, payment_service):
        with pytest.raises(PaymentNotFoundError):
            payment_service.confirm(uuid4())


class TestUpdateStatus:
    def test_confirmed_routes_through_confirm(self, session, payment_service, invoice):
        payment = payment_service.create(invoice.id, PaymentMethod.OFFLINE, Decimal("1000000"))

        updated = payment_service.update_status(payment.id, PaymentStatus.CONFIRMED)

        assert updated.status == PaymentStatus.CONFIRMED
        assert _balance(session, invoice) == Decimal("1000000")

    def test_cancel_pending(self, payment_service, invoice):
        payment = payment_service.create(invoice.id, PaymentMethod.OFFLINE, Decimal("10"))

        assert payment_service.update_status(payment.id, "CANCELLED").status == PaymentStatus.CANCELLED

    def test_cancel_twice_is_a_no_op(self, payment_service, invoice):
        payment = payment_service.create(invoice.id, PaymentMethod.OFFLINE, Decimal("10"))
        payment_service.cancel(payment.id)

        assert payment_service.cancel(payment.id).status == PaymentStatus.CANCELLED

    def test_confirmed_cannot_be_cancelled(self, payment_service, invoice):
        payment = payment_service.create(invoice.id, PaymentMethod.ONLINE, Decimal("10"))

        with pytest.raises(InvalidTransitionError) as exc_info:
            payment_service.cancel(payment.id)
        assert exc_info.value.current_status == "CONFIRMED"
        assert exc_info.value.allowed == ()

    def test_cancelled_cannot_return_to_pending(self, payment_service, invoice):
        payment = payment_service.create(invoice.id, PaymentMethod.OFFLINE, Decimal("10"))
        payment_service.cancel(payment.id)

        with pytest.raises(InvalidTransitionError):
            payment_service.update_status(payment.id, PaymentStatus.PENDING)
