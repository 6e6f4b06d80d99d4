"""
ContractService -- lease creation and the contract state machine.

Responsibility:
    Creates DRAFT contracts (occupying the unit) and applies status
    transitions together with their unit and invoice side effects.

Architecture position:
    Kernel > Services.  Uses UnitService for occupancy flips and
    InvoiceService for generation on activation.

Invariants enforced:
    - Transitions follow CONTRACT_TRANSITIONS; anything else raises
      InvalidTransitionError carrying the allowed set.
    - A unit is BUSY iff a DRAFT/ACTIVE contract references it.  Creation
      locks the unit row (SELECT ... FOR UPDATE) before checking and
      flipping it, so two concurrent creations cannot both see FREE.
    - DRAFT -> ACTIVE generates invoices only when the contract has none.
    - Every status change and its side effects share one transaction.

Failure modes:
    - ValueError on start_date >= end_date or non-positive amount.
    - TenantNotFoundError / UnitNotFoundError / ContractNotFoundError.
    - UnitUnavailableError when the unit is already BUSY.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from rental_kernel.db.types import to_positive_money
from rental_kernel.domain.dtos import ContractInfo
from rental_kernel.domain.lifecycle import (
    ContractStatus,
    UnitStatus,
    allowed_contract_transitions,
    is_contract_transition_allowed,
    unit_status_after,
)
from rental_kernel.exceptions import (
    ContractNotFoundError,
    InvalidTransitionError,
    UnitUnavailableError,
)
from rental_kernel.logging_config import get_logger
from rental_kernel.models.contract import Contract
from rental_kernel.services.base import BaseService
from rental_kernel.services.invoice_service import InvoiceService
from rental_kernel.services.tenant_service import TenantService
from rental_kernel.services.unit_service import UnitService

logger = get_logger("services.contract")


class ContractService(BaseService[Contract]):
    """
    Service for lease agreements.

    Contract:
        All public methods return ContractInfo DTOs.  The caller owns the
        transaction; nothing here commits.
    """

    def _get_by_id(self, contract_id: UUID) -> Contract:
        contract = self.session.get(Contract, contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract

    def _get_for_update(self, contract_id: UUID) -> Contract:
        """Get ORM Contract with row lock for a status transition."""
        contract = self.session.execute(
            select(Contract)
            .where(Contract.id == contract_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract

    def get(self, contract_id: UUID) -> ContractInfo:
        return ContractInfo.from_model(self._get_by_id(contract_id))

    def create(
        self,
        tenant_id: UUID,
        unit_id: UUID,
        start_date: date,
        end_date: date,
        amount: Decimal | str | int,
        notes: str | None = None,
    ) -> ContractInfo:
        """
        Create a DRAFT contract and mark its unit BUSY.

        Preconditions:
            - start_date < end_date.
            - amount > 0.

        Postconditions:
            - The unit is BUSY and the contract is DRAFT, in the same flush.
            - On UnitUnavailableError the unit row is unchanged.

        Args:
            tenant_id: Tenant signing the lease.
            unit_id: Unit being leased.
            start_date: First day of the lease.
            end_date: Last day of the lease (exclusive for billing).
            amount: Monthly rent.
            notes: Free-form notes.

        Returns:
            ContractInfo for the new DRAFT contract.

        Raises:
            ValueError: On inverted dates or non-positive amount.
            TenantNotFoundError: If the tenant doesn't exist.
            UnitNotFoundError: If the unit doesn't exist.
            UnitUnavailableError: If the unit is already BUSY.
        """
        if start_date >= end_date:
            raise ValueError(
                f"start_date ({start_date}) must be before end_date ({end_date})"
            )
        rent = to_positive_money(amount)

        TenantService(self.session, self._clock)._get_by_id(tenant_id)

        units = UnitService(self.session, self._clock)
        # INVARIANT: lock before check-and-flip so concurrent creations serialize.
        unit = units._get_for_update(unit_id)
        if unit.status == UnitStatus.BUSY:
            logger.warning(
                "contract_unit_unavailable",
                extra={"unit_id": str(unit_id), "tenant_id": str(tenant_id)},
            )
            raise UnitUnavailableError(str(unit_id), unit.name)

        contract = Contract(
            tenant_id=tenant_id,
            unit_id=unit_id,
            start_date=start_date,
            end_date=end_date,
            amount=rent,
            status=ContractStatus.DRAFT,
            notes=notes,
        )
        self.session.add(contract)
        self.session.flush()
        units.mark_busy(unit, contract.id)

        logger.info(
            "contract_created",
            extra={
                "contract_id": str(contract.id),
                "tenant_id": str(tenant_id),
                "unit_id": str(unit_id),
                "amount": str(rent),
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
            },
        )
        return ContractInfo.from_model(contract)

    def change_status(
        self,
        contract_id: UUID,
        new_status: ContractStatus,
    ) -> ContractInfo:
        """
        Move a contract along the transition table.

        Side effects, applied in the same transaction:
            - -> ACTIVE: unit forced BUSY; invoices generated if none exist.
            - -> COMPLETED / CANCELLED: unit forced FREE.

        Raises:
            ContractNotFoundError: If the contract doesn't exist.
            InvalidTransitionError: If the edge is not in the table.
        """
        requested = ContractStatus(new_status)
        contract = self._get_for_update(contract_id)
        current = ContractStatus(contract.status)

        if not is_contract_transition_allowed(current, requested):
            allowed = allowed_contract_transitions(current)
            logger.warning(
                "contract_transition_rejected",
                extra={
                    "contract_id": str(contract_id),
                    "current_status": current.value,
                    "requested_status": requested.value,
                },
            )
            raise InvalidTransitionError(
                "contract",
                str(contract_id),
                current.value,
                requested.value,
                allowed,
            )

        contract.status = requested
        self.session.flush()

        units = UnitService(self.session, self._clock)
        generated = 0
        if unit_status_after(requested) == UnitStatus.BUSY:
            units.mark_busy(units._get_for_update(contract.unit_id), contract.id)
            invoices = InvoiceService(self.session, self._clock)
            if invoices.count_for_contract(contract.id) == 0:
                generated = len(invoices.generate_for_contract(contract.id))
        else:
            units.mark_free(contract.unit_id, contract.id)

        logger.info(
            "contract_status_changed",
            extra={
                "contract_id": str(contract_id),
                "from_status": current.value,
                "to_status": requested.value,
                "invoices_generated": generated,
            },
        )
        return ContractInfo.from_model(contract)
