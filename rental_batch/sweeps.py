"""
Background sweeps -- recurring maintenance passes over the ledger.

Contract:
    Every sweep exposes ``name`` and ``run(session, as_of) -> SweepResult``.
    ``run`` does its writes in the caller's transaction and returns the
    notifications to send in ``SweepResult.outbox``; the runner delivers
    them after commit.

Sweeps:
    overdue       PENDING invoices due before ``as_of`` -> OVERDUE, tenants told.
    reminders     PENDING invoices due ``lead_days`` after ``as_of`` -> reminder.
    backfill      ACTIVE contracts without invoices -> monthly invoices generated.
    auto_archive  CLOSED conversations idle past ``inactive_days`` -> archive store.
    cleanup       archive-store conversations older than the retention -> purged.

Invariants enforced:
    - All sweeps are idempotent: a second run with the same ``as_of``
      changes nothing (the reminder sweep re-sends, so it is scheduled daily).
    - ``as_of`` comes from the injected clock, never from the system time.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from types import MappingProxyType
from typing import Protocol, runtime_checkable

from sqlalchemy.orm import Session

from rental_kernel.db.types import round_money
from rental_kernel.domain.dtos import OutboundNotification, SweepResult
from rental_kernel.logging_config import get_logger
from rental_kernel.selectors.invoice_selector import InvoiceDueRow, InvoiceSelector
from rental_kernel.services.archive_service import ArchiveService
from rental_kernel.services.invoice_service import InvoiceService
from rental_services.notifications import INVOICE_OVERDUE, INVOICE_REMINDER

logger = get_logger("batch.sweeps")


@runtime_checkable
class Sweep(Protocol):
    name: str

    def run(self, session: Session, as_of: date) -> SweepResult: ...


def _start_of_day(as_of: date) -> datetime:
    return datetime.combine(as_of, time.min, tzinfo=timezone.utc)


def _invoice_notice(kind: str, row: InvoiceDueRow, **extra) -> OutboundNotification:
    payload = {
        "invoice_id": str(row.invoice_id),
        "contract_id": str(row.contract_id),
        "due_date": row.due_date.isoformat(),
        "amount": str(round_money(row.amount)),
        **extra,
    }
    return OutboundNotification(kind, str(row.tenant_id), MappingProxyType(payload))


class OverdueSweep:
    """Bulk PENDING -> OVERDUE flip for invoices past their due date."""

    name = "overdue"

    def run(self, session: Session, as_of: date) -> SweepResult:
        candidates = InvoiceSelector(session).overdue_candidates(as_of)
        count = InvoiceService(session).mark_overdue(as_of)

        outbox = tuple(
            _invoice_notice(INVOICE_OVERDUE, row, days_overdue=(as_of - row.due_date).days)
            for row in candidates
            if not row.is_archived
        )
        return SweepResult(
            sweep=self.name,
            as_of=as_of,
            affected=count,
            details=tuple(row.invoice_id for row in candidates),
            outbox=outbox,
        )


class PaymentReminderSweep:
    """Reminds tenants about invoices falling due ``lead_days`` from today."""

    name = "reminders"

    def __init__(self, lead_days: int = 3):
        if lead_days < 0:
            raise ValueError(f"lead_days must be >= 0, got {lead_days}")
        self.lead_days = lead_days

    def run(self, session: Session, as_of: date) -> SweepResult:
        target = as_of + timedelta(days=self.lead_days)
        rows = InvoiceSelector(session).due_on(target)
        outbox = tuple(
            _invoice_notice(INVOICE_REMINDER, row, days_until_due=self.lead_days)
            for row in rows
        )
        logger.info(
            "payment_reminders_prepared",
            extra={"due_date": target.isoformat(), "count": len(rows)},
        )
        return SweepResult(
            sweep=self.name,
            as_of=as_of,
            affected=len(rows),
            details=tuple(row.invoice_id for row in rows),
            outbox=outbox,
        )


class MissingInvoiceBackfill:
    """Generates invoices for ACTIVE contracts that have none."""

    name = "backfill"

    def run(self, session: Session, as_of: date) -> SweepResult:
        contract_ids = InvoiceSelector(session).active_contracts_without_invoices()
        invoices = InvoiceService(session)
        created = 0
        for contract_id in contract_ids:
            created += len(invoices.generate_for_contract(contract_id))

        logger.info(
            "missing_invoices_backfilled",
            extra={"contracts": len(contract_ids), "invoices": created},
        )
        return SweepResult(
            sweep=self.name,
            as_of=as_of,
            affected=created,
            details=tuple(contract_ids),
        )


class AutoArchiveSweep:
    """Moves CLOSED conversations idle for ``inactive_days`` into the archive store."""

    name = "auto_archive"

    def __init__(self, inactive_days: int = 365):
        if inactive_days < 1:
            raise ValueError(f"inactive_days must be >= 1, got {inactive_days}")
        self.inactive_days = inactive_days

    def cutoff(self, as_of: date) -> datetime:
        return _start_of_day(as_of) - timedelta(days=self.inactive_days)

    def run(self, session: Session, as_of: date) -> SweepResult:
        conversations, _messages = ArchiveService(session).auto_archive_conversations(
            self.cutoff(as_of), archived_at=_start_of_day(as_of)
        )
        return SweepResult(sweep=self.name, as_of=as_of, affected=conversations)


class ArchiveRetentionCleanup:
    """Purges archive-store conversations older than ``retention_days``."""

    name = "cleanup"

    def __init__(self, retention_days: int = 1825):
        if retention_days < 1:
            raise ValueError(f"retention_days must be >= 1, got {retention_days}")
        self.retention_days = retention_days

    def cutoff(self, as_of: date) -> datetime:
        return _start_of_day(as_of) - timedelta(days=self.retention_days)

    def run(self, session: Session, as_of: date) -> SweepResult:
        conversations, _messages = ArchiveService(session).purge_archived_conversations(
            self.cutoff(as_of)
        )
        return SweepResult(sweep=self.name, as_of=as_of, affected=conversations)
