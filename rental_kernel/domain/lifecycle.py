"""
Lifecycle -- status enums and transition tables.

Responsibility:
    Single source of truth for every status the kernel stores and for the
    edges each status machine may take.  Pure: no ORM, no I/O.

    Contract:  DRAFT -> {ACTIVE, CANCELLED}
               ACTIVE -> {COMPLETED, CANCELLED}
               COMPLETED, CANCELLED terminal
    Invoice:   PENDING -> {OVERDUE, PAID}
               OVERDUE -> {PAID}
               PAID terminal
    Payment:   PENDING -> {CONFIRMED, CANCELLED}
               CONFIRMED, CANCELLED terminal
"""

from enum import Enum


class UnitStatus(str, Enum):
    FREE = "FREE"
    BUSY = "BUSY"
    MAINTENANCE = "MAINTENANCE"


class ContractStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class InvoiceStatus(str, Enum):
    PENDING = "PENDING"
    OVERDUE = "OVERDUE"
    PAID = "PAID"


class PaymentMethod(str, Enum):
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class ConversationStatus(str, Enum):
    OPEN = "OPEN"
    PENDING = "PENDING"
    CLOSED = "CLOSED"


CONTRACT_TRANSITIONS: dict[ContractStatus, frozenset[ContractStatus]] = {
    ContractStatus.DRAFT: frozenset({ContractStatus.ACTIVE, ContractStatus.CANCELLED}),
    ContractStatus.ACTIVE: frozenset({ContractStatus.COMPLETED, ContractStatus.CANCELLED}),
    ContractStatus.COMPLETED: frozenset(),
    ContractStatus.CANCELLED: frozenset(),
}

INVOICE_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.PENDING: frozenset({InvoiceStatus.OVERDUE, InvoiceStatus.PAID}),
    InvoiceStatus.OVERDUE: frozenset({InvoiceStatus.PAID}),
    InvoiceStatus.PAID: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.CONFIRMED, PaymentStatus.CANCELLED}),
    PaymentStatus.CONFIRMED: frozenset(),
    PaymentStatus.CANCELLED: frozenset(),
}

# Contracts in these states hold their unit.
OCCUPYING_CONTRACT_STATUSES: frozenset[ContractStatus] = frozenset(
    {ContractStatus.DRAFT, ContractStatus.ACTIVE}
)


def allowed_contract_transitions(current: ContractStatus) -> tuple[ContractStatus, ...]:
    """Allowed next states in a stable (declaration) order."""
    targets = CONTRACT_TRANSITIONS[ContractStatus(current)]
    return tuple(s for s in ContractStatus if s in targets)


def is_contract_transition_allowed(current: ContractStatus, requested: ContractStatus) -> bool:
    return ContractStatus(requested) in CONTRACT_TRANSITIONS[ContractStatus(current)]


def unit_status_after(requested: ContractStatus) -> UnitStatus:
    """
    Unit occupancy implied by a contract entering ``requested``.

    ACTIVE keeps (or re-asserts) the unit BUSY; both terminal states free it.
    DRAFT is never a transition target.
    """
    if ContractStatus(requested) in OCCUPYING_CONTRACT_STATUSES:
        return UnitStatus.BUSY
    return UnitStatus.FREE


def allowed_payment_transitions(current: PaymentStatus) -> tuple[PaymentStatus, ...]:
    targets = PAYMENT_TRANSITIONS[PaymentStatus(current)]
    return tuple(s for s in PaymentStatus if s in targets)
