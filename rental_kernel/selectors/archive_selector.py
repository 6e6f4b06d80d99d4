"""
Module: rental_kernel.selectors.archive_selector
Responsibility: Archive statistics (live vs archived rows per entity and the
    size of the conversation archive store) and retention-cleanup candidates.
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import case, func, select

from rental_kernel.models.contract import Contract
from rental_kernel.models.conversation import ArchivedConversation, ArchivedMessage
from rental_kernel.models.invoice import Invoice
from rental_kernel.models.payment import Payment
from rental_kernel.models.tenant import Tenant
from rental_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class EntityArchiveCounts:
    active: int
    archived: int

    @property
    def total(self) -> int:
        return self.active + self.archived


@dataclass(frozen=True)
class ArchiveSummary:
    tenants: EntityArchiveCounts
    contracts: EntityArchiveCounts
    invoices: EntityArchiveCounts
    payments: EntityArchiveCounts
    archived_conversations: int
    archived_messages: int
    oldest_archive: datetime | None


class ArchiveSelector(BaseSelector[ArchivedConversation]):

    def _counts(self, model) -> EntityArchiveCounts:
        row = self.session.execute(
            select(
                func.count(model.id),
                func.coalesce(func.sum(case((model.is_archived.is_(True), 1), else_=0)), 0),
            )
        ).one()
        total, archived = int(row[0] or 0), int(row[1] or 0)
        return EntityArchiveCounts(active=total - archived, archived=archived)

    def summary(self) -> ArchiveSummary:
        """Counts of live and archived rows, plus archive store totals."""
        return ArchiveSummary(
            tenants=self._counts(Tenant),
            contracts=self._counts(Contract),
            invoices=self._counts(Invoice),
            payments=self._counts(Payment),
            archived_conversations=self.session.execute(
                select(func.count(ArchivedConversation.id))
            ).scalar_one(),
            archived_messages=self.session.execute(
                select(func.count(ArchivedMessage.id))
            ).scalar_one(),
            oldest_archive=self.session.execute(
                select(func.min(ArchivedConversation.archived_at))
            ).scalar_one(),
        )

    def conversations_archived_before(self, cutoff: datetime) -> list[UUID]:
        """Archive-store conversation ids older than ``cutoff``."""
        stmt = (
            select(ArchivedConversation.id)
            .where(ArchivedConversation.archived_at < cutoff)
            .order_by(ArchivedConversation.archived_at, ArchivedConversation.id)
        )
        return list(self.session.execute(stmt).scalars())
