"""
Tests for ContractService.

Tests cover:
1. Creation occupies the unit; a BUSY unit is refused
2. The transition table and InvalidTransitionError details
3. Activation side effects (invoice generation, exactly once)
4. Unit release on completion / cancellation
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from rental_kernel.domain.lifecycle import ContractStatus, InvoiceStatus, UnitStatus
from rental_kernel.exceptions import (
    ContractNotFoundError,
    InvalidTransitionError,
    TenantNotFoundError,
    UnitNotFoundError,
    UnitUnavailableError,
)
from rental_kernel.models.unit import Unit
from rental_kernel.selectors.invoice_selector import InvoiceSelector
from rental_kernel.services.contract_service import ContractService
from rental_kernel.services.invoice_service import InvoiceService
from rental_kernel.services.unit_service import UnitService


@pytest.fixture
def contract_service(session, deterministic_clock):
    return ContractService(session, deterministic_clock)


def _unit_status(session, unit_id) -> UnitStatus:
    return UnitService(session).get(unit_id).status


class TestCreate:
    def test_creates_draft_and_marks_unit_busy(self, session, create_contract):
        contract = create_contract()

        assert contract.status == ContractStatus.DRAFT
        assert contract.amount == Decimal("1000000")
        assert contract.is_archived is False
        assert _unit_status(session, contract.unit_id) == UnitStatus.BUSY

    def test_busy_unit_is_refused(self, session, create_contract, create_tenant):
        first = create_contract()
        other_tenant = create_tenant("Second Tenant")

        with pytest.raises(UnitUnavailableError) as exc_info:
            create_contract(tenant_id=other_tenant.id, unit_id=first.unit_id)

        assert exc_info.value.code == "UNIT_ALREADY_BUSY"
        assert exc_info.value.unit_id == str(first.unit_id)
        assert exc_info.value.unit_name == "U1"

    def test_maintenance_unit_can_be_leased(
        self, session, create_unit, create_contract
    ):
        unit = create_unit("Under repair")
        session.get(Unit, unit.id).status = UnitStatus.MAINTENANCE
        session.flush()

        contract = create_contract(unit_id=unit.id)

        assert _unit_status(session, contract.unit_id) == UnitStatus.BUSY

    def test_inverted_dates_rejected(self, create_contract):
        with pytest.raises(ValueError, match="start_date"):
            create_contract(start_date=date(2024, 3, 1), end_date=date(2024, 3, 1))

    def test_non_positive_amount_rejected(self, create_contract):
        with pytest.raises(ValueError, match="positive"):
            create_contract(amount=Decimal("0"))

    def test_float_amount_rejected(self, create_contract):
        with pytest.raises(TypeError):
            create_contract(amount=1000.5)

    def test_unknown_tenant(self, contract_service, create_unit):
        unit = create_unit()
        with pytest.raises(TenantNotFoundError):
            contract_service.create(
                uuid4(), unit.id, date(2024, 1, 1), date(2024, 2, 1), Decimal("10")
            )

    def test_unknown_unit(self, contract_service, create_tenant):
        tenant = create_tenant()
        with pytest.raises(UnitNotFoundError):
            contract_service.create(
                tenant.id, uuid4(), date(2024, 1, 1), date(2024, 2, 1), Decimal("10")
            )

    def test_created_event_logged(self, create_contract, captured_logs):
        contract = create_contract()

        events = [r for r in captured_logs() if r["message"] == "contract_created"]
        assert len(events) == 1
        assert events[0]["contract_id"] == str(contract.id)


class TestChangeStatus:
    def test_activation_generates_invoices(self, session, contract_service, create_contract):
        contract = create_contract()

        active = contract_service.change_status(contract.id, ContractStatus.ACTIVE)

        assert active.status == ContractStatus.ACTIVE
        invoices = InvoiceSelector(session).list(contract_id=contract.id)
        assert [i.due_date for i in invoices] == [
            date(2024, 2, 1),
            date(2024, 3, 1),
            date(2024, 3, 15),
        ]
        assert all(i.amount == Decimal("1000000") for i in invoices)
        assert all(i.status == InvoiceStatus.PENDING for i in invoices)
        assert _unit_status(session, contract.unit_id) == UnitStatus.BUSY

    def test_activation_skips_generation_when_invoices_exist(
        self, session, contract_service, create_contract, deterministic_clock
    ):
        contract = create_contract()
        InvoiceService(session, deterministic_clock).create(
            contract.id, date(2024, 1, 15), Decimal("250")
        )

        contract_service.change_status(contract.id, ContractStatus.ACTIVE)

        assert InvoiceService(session).count_for_contract(contract.id) == 1

    @pytest.mark.parametrize("terminal", [ContractStatus.COMPLETED, ContractStatus.CANCELLED])
    def test_terminal_status_frees_unit(
        self, session, contract_service, create_contract, terminal
    ):
        contract = create_contract()
        contract_service.change_status(contract.id, ContractStatus.ACTIVE)

        contract_service.change_status(contract.id, terminal)

        assert contract_service.get(contract.id).status == terminal
        assert _unit_status(session, contract.unit_id) == UnitStatus.FREE

    def test_cancelled_draft_frees_unit_for_new_contract(
        self, session, contract_service, create_contract
    ):
        contract = create_contract()
        contract_service.change_status(contract.id, ContractStatus.CANCELLED)

        replacement = create_contract(unit_id=contract.unit_id)

        assert replacement.status == ContractStatus.DRAFT

    def test_invalid_transition_carries_allowed_set(self, contract_service, create_contract):
        contract = create_contract()

        with pytest.raises(InvalidTransitionError) as exc_info:
            contract_service.change_status(contract.id, ContractStatus.COMPLETED)

        err = exc_info.value
        assert err.code == "INVALID_STATUS_TRANSITION"
        assert err.current_status == "DRAFT"
        assert err.requested_status == "COMPLETED"
        assert err.allowed == (ContractStatus.ACTIVE, ContractStatus.CANCELLED)

    def test_terminal_contract_cannot_move(self, contract_service, create_contract):
        contract = create_contract()
        contract_service.change_status(contract.id, ContractStatus.CANCELLED)

        with pytest.raises(InvalidTransitionError) as exc_info:
            contract_service.change_status(contract.id, ContractStatus.ACTIVE)
        assert exc_info.value.allowed == ()

    def test_rejected_transition_leaves_state_unchanged(
        self, session, contract_service, create_contract
    ):
        contract = create_contract()
        with pytest.raises(InvalidTransitionError):
            contract_service.change_status(contract.id, ContractStatus.COMPLETED)

        assert contract_service.get(contract.id).status == ContractStatus.DRAFT
        assert _unit_status(session, contract.unit_id) == UnitStatus.BUSY

    def test_missing_contract(self, contract_service):
        with pytest.raises(ContractNotFoundError):
            contract_service.change_status(uuid4(), ContractStatus.ACTIVE)
