"""Status machine tables and helpers."""

import pytest

from rental_kernel.domain.lifecycle import (
    CONTRACT_TRANSITIONS,
    INVOICE_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    ContractStatus,
    InvoiceStatus,
    PaymentStatus,
    UnitStatus,
    allowed_contract_transitions,
    allowed_payment_transitions,
    is_contract_transition_allowed,
    unit_status_after,
)


class TestContractTransitions:
    @pytest.mark.parametrize(
        "current, requested",
        [
            (ContractStatus.DRAFT, ContractStatus.ACTIVE),
            (ContractStatus.DRAFT, ContractStatus.CANCELLED),
            (ContractStatus.ACTIVE, ContractStatus.COMPLETED),
            (ContractStatus.ACTIVE, ContractStatus.CANCELLED),
        ],
    )
    def test_allowed_edges(self, current, requested):
        assert is_contract_transition_allowed(current, requested)

    @pytest.mark.parametrize(
        "current, requested",
        [
            (ContractStatus.DRAFT, ContractStatus.COMPLETED),
            (ContractStatus.DRAFT, ContractStatus.DRAFT),
            (ContractStatus.ACTIVE, ContractStatus.DRAFT),
            (ContractStatus.ACTIVE, ContractStatus.ACTIVE),
            (ContractStatus.COMPLETED, ContractStatus.ACTIVE),
            (ContractStatus.CANCELLED, ContractStatus.ACTIVE),
        ],
    )
    def test_rejected_edges(self, current, requested):
        assert not is_contract_transition_allowed(current, requested)

    def test_terminal_states_have_no_exits(self):
        assert CONTRACT_TRANSITIONS[ContractStatus.COMPLETED] == frozenset()
        assert CONTRACT_TRANSITIONS[ContractStatus.CANCELLED] == frozenset()
        assert allowed_contract_transitions(ContractStatus.CANCELLED) == ()

    def test_allowed_set_is_in_declaration_order(self):
        assert allowed_contract_transitions(ContractStatus.DRAFT) == (
            ContractStatus.ACTIVE,
            ContractStatus.CANCELLED,
        )

    def test_accepts_raw_strings(self):
        assert is_contract_transition_allowed("DRAFT", "ACTIVE")


class TestUnitStatusAfter:
    def test_active_occupies(self):
        assert unit_status_after(ContractStatus.ACTIVE) == UnitStatus.BUSY

    @pytest.mark.parametrize("status", [ContractStatus.COMPLETED, ContractStatus.CANCELLED])
    def test_terminal_frees(self, status):
        assert unit_status_after(status) == UnitStatus.FREE


class TestInvoiceAndPaymentTables:
    def test_paid_is_terminal(self):
        assert INVOICE_TRANSITIONS[InvoiceStatus.PAID] == frozenset()

    def test_overdue_only_goes_to_paid(self):
        assert INVOICE_TRANSITIONS[InvoiceStatus.OVERDUE] == frozenset({InvoiceStatus.PAID})

    def test_payment_terminals(self):
        assert PAYMENT_TRANSITIONS[PaymentStatus.CONFIRMED] == frozenset()
        assert allowed_payment_transitions(PaymentStatus.CANCELLED) == ()
        assert allowed_payment_transitions(PaymentStatus.PENDING) == (
            PaymentStatus.CONFIRMED,
            PaymentStatus.CANCELLED,
        )

    def test_statuses_compare_equal_to_stored_strings(self):
        assert PaymentStatus.CONFIRMED == "CONFIRMED"
        assert ContractStatus("ACTIVE") is ContractStatus.ACTIVE
