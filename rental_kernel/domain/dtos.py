"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable snapshots of units, tenants, contracts, invoices, payments and
    balances returned by every kernel service, plus the result objects of the
    archive cascade and the background sweeps.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service layer.

Invariants enforced:
    - Callers never receive live ORM entities, so a DTO stays valid after
      the session that produced it is closed.
    - Monetary fields are Decimal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Mapping
from uuid import UUID

from rental_kernel.domain.lifecycle import (
    ContractStatus,
    InvoiceStatus,
    PaymentMethod,
    PaymentStatus,
    UnitStatus,
)

if TYPE_CHECKING:
    from rental_kernel.models.balance import Balance as BalanceModel
    from rental_kernel.models.contract import Contract as ContractModel
    from rental_kernel.models.invoice import Invoice as InvoiceModel
    from rental_kernel.models.payment import Payment as PaymentModel
    from rental_kernel.models.tenant import Tenant as TenantModel
    from rental_kernel.models.unit import Unit as UnitModel


@dataclass(frozen=True)
class ArchiveStamp:
    """The archive fields a cascade writes onto every row it touches."""

    archived_at: datetime
    archived_by: str | None
    reason: str | None


@dataclass(frozen=True)
class UnitInfo:
    id: UUID
    name: str
    monthly_price: Decimal
    status: UnitStatus
    floor: int | None = None
    area: Decimal | None = None

    @classmethod
    def from_model(cls, model: UnitModel) -> UnitInfo:
        return cls(
            id=model.id,
            name=model.name,
            monthly_price=model.monthly_price,
            status=UnitStatus(model.status),
            floor=model.floor,
            area=model.area,
        )


@dataclass(frozen=True)
class TenantInfo:
    id: UUID
    full_name: str
    email: str | None
    phone: str | None
    is_archived: bool = False
    archived_at: datetime | None = None

    @classmethod
    def from_model(cls, model: TenantModel) -> TenantInfo:
        return cls(
            id=model.id,
            full_name=model.full_name,
            email=model.email,
            phone=model.phone,
            is_archived=model.is_archived,
            archived_at=model.archived_at,
        )


@dataclass(frozen=True)
class ContractInfo:
    """Immutable snapshot of a lease agreement."""

    id: UUID
    tenant_id: UUID
    unit_id: UUID
    start_date: date
    end_date: date
    amount: Decimal
    status: ContractStatus
    notes: str | None = None
    is_archived: bool = False

    @classmethod
    def from_model(cls, model: ContractModel) -> ContractInfo:
        return cls(
            id=model.id,
            tenant_id=model.tenant_id,
            unit_id=model.unit_id,
            start_date=model.start_date,
            end_date=model.end_date,
            amount=model.amount,
            status=ContractStatus(model.status),
            notes=model.notes,
            is_archived=model.is_archived,
        )


@dataclass(frozen=True)
class InvoiceInfo:
    id: UUID
    contract_id: UUID
    due_date: date
    amount: Decimal
    status: InvoiceStatus
    is_archived: bool = False

    @classmethod
    def from_model(cls, model: InvoiceModel) -> InvoiceInfo:
        return cls(
            id=model.id,
            contract_id=model.contract_id,
            due_date=model.due_date,
            amount=model.amount,
            status=InvoiceStatus(model.status),
            is_archived=model.is_archived,
        )


@dataclass(frozen=True)
class PaymentInfo:
    id: UUID
    invoice_id: UUID
    method: PaymentMethod
    amount: Decimal
    status: PaymentStatus
    paid_at: datetime | None = None
    is_archived: bool = False

    @classmethod
    def from_model(cls, model: PaymentModel) -> PaymentInfo:
        return cls(
            id=model.id,
            invoice_id=model.invoice_id,
            method=PaymentMethod(model.method),
            amount=model.amount,
            status=PaymentStatus(model.status),
            paid_at=model.paid_at,
            is_archived=model.is_archived,
        )


@dataclass(frozen=True)
class BalanceInfo:
    tenant_id: UUID
    current: Decimal

    @classmethod
    def from_model(cls, model: BalanceModel) -> BalanceInfo:
        return cls(tenant_id=model.tenant_id, current=model.current)


@dataclass(frozen=True)
class ArchiveResult:
    """
    Rows touched by one archive or unarchive cascade.

    Counts include the root row itself (``tenants`` is 1 after archiving a
    tenant, 0 after archiving a contract).
    """

    root_entity: str
    root_id: UUID
    stamp: ArchiveStamp | None
    tenants: int = 0
    contracts: int = 0
    invoices: int = 0
    payments: int = 0
    conversations: int = 0

    @property
    def total(self) -> int:
        return self.tenants + self.contracts + self.invoices + self.payments + self.conversations


@dataclass(frozen=True)
class RemovalResult:
    """Rows permanently deleted by a hard remove."""

    root_entity: str
    root_id: UUID
    contracts: int = 0
    invoices: int = 0
    payments: int = 0
    balances: int = 0
    freed_unit_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class OutboundNotification:
    """A notification a sweep wants sent once its transaction has committed."""

    kind: str
    recipient_id: str
    payload: Mapping[str, Any]


@dataclass(frozen=True)
class SweepResult:
    """
    Outcome of one background sweep run.

    ``affected`` counts the rows the sweep changed (or, for the reminder
    sweep, the invoices it reminded about).  ``notifications`` is filled in by
    the runner with the number of outbox entries actually delivered.
    """

    sweep: str
    as_of: date
    affected: int = 0
    skipped: bool = False
    notifications: int = 0
    details: tuple[UUID, ...] = field(default_factory=tuple)
    outbox: tuple[OutboundNotification, ...] = field(default_factory=tuple)
