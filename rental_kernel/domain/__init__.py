"""
Pure domain layer.

This module contains the status machines, the invoice schedule and the
immutable DTOs with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O (SystemClock aside)
"""

from rental_kernel.domain.billing import Installment, build_schedule, monthly_due_dates
from rental_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from rental_kernel.domain.dtos import (
    ArchiveResult,
    ArchiveStamp,
    BalanceInfo,
    ContractInfo,
    InvoiceInfo,
    OutboundNotification,
    PaymentInfo,
    RemovalResult,
    SweepResult,
    TenantInfo,
    UnitInfo,
)
from rental_kernel.domain.lifecycle import (
    CONTRACT_TRANSITIONS,
    INVOICE_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    ContractStatus,
    ConversationStatus,
    InvoiceStatus,
    PaymentMethod,
    PaymentStatus,
    UnitStatus,
)

__all__ = [
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Statuses
    "CONTRACT_TRANSITIONS",
    "INVOICE_TRANSITIONS",
    "PAYMENT_TRANSITIONS",
    "ContractStatus",
    "ConversationStatus",
    "InvoiceStatus",
    "PaymentMethod",
    "PaymentStatus",
    "UnitStatus",
    # Billing
    "Installment",
    "build_schedule",
    "monthly_due_dates",
    # DTOs
    "ArchiveResult",
    "ArchiveStamp",
    "BalanceInfo",
    "ContractInfo",
    "InvoiceInfo",
    "OutboundNotification",
    "PaymentInfo",
    "RemovalResult",
    "SweepResult",
    "TenantInfo",
    "UnitInfo",
]
