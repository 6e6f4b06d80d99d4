"""
ArchiveService -- archive, restore and hard-delete cascades.

Responsibility:
    Soft-deletes a tenant, contract or invoice together with everything
    beneath it, restores exactly what a given cascade archived, and
    permanently removes archived sub-trees that carry no confirmed money.

Architecture position:
    Kernel > Services.  Uses UnitService to free units on contract removal
    and BalanceService to drop a removed tenant's balance.

Invariants enforced:
    - Archive order is payments -> invoices -> contracts -> conversations
      -> root.  Every row a cascade touches gets the same archived_at,
      archived_by and archive_reason (the cascade stamp).  Rows that were
      already archived keep their own stamp.
    - Restore clears the root first, then every descendant whose stamp
      equals the root's.  Rows archived independently stay archived.
    - Tenant conversations (with messages) are copied into the archive
      store and their live rows deleted; a tenant restore moves them back
      with their original ids.
    - CLOSED conversations idle past a cutoff are auto-archived with the
      "system" stamp; tenant restores never match that stamp.
    - Hard delete requires an archived root and refuses any sub-tree that
      holds a CONFIRMED payment.  Removing a DRAFT/ACTIVE contract frees
      its unit.
    - Hard delete locks the sub-tree's payment rows before the root row,
      the same order payment confirmation takes (payment, then invoice).

Failure modes:
    - *NotFoundError for a missing root.
    - AlreadyArchivedError / NotArchivedError on the root's flag.
    - HasConfirmedPaymentsError from remove_*.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.sql import Select

from rental_kernel.domain.dtos import ArchiveResult, ArchiveStamp, RemovalResult
from rental_kernel.domain.lifecycle import (
    OCCUPYING_CONTRACT_STATUSES,
    ConversationStatus,
    PaymentStatus,
)
from rental_kernel.exceptions import (
    AlreadyArchivedError,
    HasConfirmedPaymentsError,
    NotArchivedError,
)
from rental_kernel.logging_config import get_logger
from rental_kernel.models.contract import Contract
from rental_kernel.models.conversation import (
    ArchivedConversation,
    ArchivedMessage,
    Conversation,
    Message,
)
from rental_kernel.models.invoice import Invoice
from rental_kernel.models.payment import Payment
from rental_kernel.models.tenant import Tenant
from rental_kernel.services.balance_service import BalanceService
from rental_kernel.services.base import BaseService
from rental_kernel.services.contract_service import ContractService
from rental_kernel.services.invoice_service import InvoiceService
from rental_kernel.services.tenant_service import TenantService
from rental_kernel.services.unit_service import UnitService

logger = get_logger("services.archive")

AUTO_ARCHIVE_ACTOR = "system"
AUTO_ARCHIVE_REASON = "Automatic archive after retention period"


@dataclass(frozen=True)
class _Scope:
    """Id subqueries selecting one root's descendants."""

    contract_ids: Select | None
    invoice_ids: Select | None
    payment_ids: Select


class ArchiveService(BaseService[Tenant]):
    """
    Archive/restore/remove cascades over Tenant -> Contract -> Invoice -> Payment.

    Usage:
        with session_scope() as session:
            result = ArchiveService(session, clock).archive_tenant(
                tenant_id, actor_id="admin-1", reason="moved out",
            )
    """

    # -----------------------------------------------------------------
    # Scopes
    # -----------------------------------------------------------------

    @staticmethod
    def _tenant_scope(tenant_id: UUID) -> _Scope:
        contract_ids = select(Contract.id).where(Contract.tenant_id == tenant_id)
        invoice_ids = select(Invoice.id).where(Invoice.contract_id.in_(contract_ids))
        payment_ids = select(Payment.id).where(Payment.invoice_id.in_(invoice_ids))
        return _Scope(contract_ids, invoice_ids, payment_ids)

    @staticmethod
    def _contract_scope(contract_id: UUID) -> _Scope:
        invoice_ids = select(Invoice.id).where(Invoice.contract_id == contract_id)
        payment_ids = select(Payment.id).where(Payment.invoice_id.in_(invoice_ids))
        return _Scope(None, invoice_ids, payment_ids)

    @staticmethod
    def _invoice_scope(invoice_id: UUID) -> _Scope:
        payment_ids = select(Payment.id).where(Payment.invoice_id == invoice_id)
        return _Scope(None, None, payment_ids)

    # -----------------------------------------------------------------
    # Bulk flag updates
    # -----------------------------------------------------------------

    def _stamp(self, actor_id: str | None, reason: str | None) -> ArchiveStamp:
        return ArchiveStamp(
            archived_at=self._clock.now(),
            archived_by=str(actor_id) if actor_id is not None else None,
            reason=reason,
        )

    def _archive_rows(self, model, ids: Select | None, stamp: ArchiveStamp) -> int:
        if ids is None:
            return 0
        result = self.session.execute(
            update(model)
            .where(model.id.in_(ids))
            .where(model.is_archived.is_(False))
            .values(
                is_archived=True,
                archived_at=stamp.archived_at,
                archived_by=stamp.archived_by,
                archive_reason=stamp.reason,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def _restore_rows(self, model, ids: Select | None, stamp: ArchiveStamp) -> int:
        if ids is None:
            return 0
        result = self.session.execute(
            update(model)
            .where(model.id.in_(ids))
            .where(model.is_archived.is_(True))
            .where(model.archived_at == stamp.archived_at)
            .where(model.archived_by.is_not_distinct_from(stamp.archived_by))
            .where(model.archive_reason.is_not_distinct_from(stamp.reason))
            .values(
                is_archived=False,
                archived_at=None,
                archived_by=None,
                archive_reason=None,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def _archive_scope(self, scope: _Scope, stamp: ArchiveStamp) -> tuple[int, int, int]:
        # Children first: payments, invoices, contracts.
        payments = self._archive_rows(Payment, scope.payment_ids, stamp)
        invoices = self._archive_rows(Invoice, scope.invoice_ids, stamp)
        contracts = self._archive_rows(Contract, scope.contract_ids, stamp)
        return contracts, invoices, payments

    def _restore_scope(self, scope: _Scope, stamp: ArchiveStamp) -> tuple[int, int, int]:
        # Root already restored; parents before children.
        contracts = self._restore_rows(Contract, scope.contract_ids, stamp)
        invoices = self._restore_rows(Invoice, scope.invoice_ids, stamp)
        payments = self._restore_rows(Payment, scope.payment_ids, stamp)
        return contracts, invoices, payments

    @staticmethod
    def _root_stamp(root) -> ArchiveStamp:
        return ArchiveStamp(
            archived_at=root.archived_at,
            archived_by=root.archived_by,
            reason=root.archive_reason,
        )

    # -----------------------------------------------------------------
    # Conversations
    # -----------------------------------------------------------------

    def _move_conversations_to_archive(self, tenant_id: UUID, stamp: ArchiveStamp) -> int:
        conversations = self.session.execute(
            select(Conversation).where(Conversation.tenant_id == tenant_id)
        ).scalars().all()
        self._copy_to_archive_store(conversations, stamp)
        return len(conversations)

    def _copy_to_archive_store(self, conversations, stamp: ArchiveStamp) -> int:
        """Move live conversations with their messages; returns messages moved."""
        moved_messages = 0
        for conversation in conversations:
            archived = ArchivedConversation(
                original_id=conversation.id,
                tenant_id=conversation.tenant_id,
                topic=conversation.topic,
                status=str(getattr(conversation.status, "value", conversation.status)),
                original_created_at=conversation.created_at,
                archived_at=stamp.archived_at,
                archived_by=stamp.archived_by,
                archive_reason=stamp.reason,
            )
            self.session.add(archived)
            self.session.flush()

            messages = self.session.execute(
                select(Message).where(Message.conversation_id == conversation.id)
            ).scalars().all()
            for message in messages:
                self.session.add(
                    ArchivedMessage(
                        archived_conversation_id=archived.id,
                        original_id=message.id,
                        sender=message.sender,
                        content=message.content,
                        original_created_at=message.created_at,
                    )
                )
                self.session.delete(message)
            moved_messages += len(messages)
            self.session.flush()
            self.session.delete(conversation)

        self.session.flush()
        return moved_messages

    def _restore_conversations(self, tenant_id: UUID, stamp: ArchiveStamp) -> int:
        archived_rows = self.session.execute(
            select(ArchivedConversation)
            .where(ArchivedConversation.tenant_id == tenant_id)
            .where(ArchivedConversation.archived_at == stamp.archived_at)
            .where(ArchivedConversation.archived_by.is_not_distinct_from(stamp.archived_by))
            .where(ArchivedConversation.archive_reason.is_not_distinct_from(stamp.reason))
        ).scalars().all()

        for archived in archived_rows:
            conversation = Conversation(
                id=archived.original_id,
                tenant_id=archived.tenant_id,
                topic=archived.topic,
                status=archived.status,
            )
            if archived.original_created_at is not None:
                conversation.created_at = archived.original_created_at
            self.session.add(conversation)
            self.session.flush()

            messages = self.session.execute(
                select(ArchivedMessage)
                .where(ArchivedMessage.archived_conversation_id == archived.id)
            ).scalars().all()
            for message in messages:
                restored = Message(
                    id=message.original_id,
                    conversation_id=archived.original_id,
                    sender=message.sender,
                    content=message.content,
                )
                if message.original_created_at is not None:
                    restored.created_at = message.original_created_at
                self.session.add(restored)
                self.session.delete(message)
            self.session.flush()
            self.session.delete(archived)

        self.session.flush()
        return len(archived_rows)

    # -----------------------------------------------------------------
    # Archive
    # -----------------------------------------------------------------

    def archive_tenant(
        self,
        tenant_id: UUID,
        actor_id: str | None = None,
        reason: str | None = None,
    ) -> ArchiveResult:
        """
        Archive a tenant and everything it owns.

        Raises:
            TenantNotFoundError: If the tenant doesn't exist.
            AlreadyArchivedError: If the tenant is already archived.
        """
        tenant = TenantService(self.session, self._clock)._get_for_update(tenant_id)
        if tenant.is_archived:
            raise AlreadyArchivedError("tenant", str(tenant_id))

        stamp = self._stamp(actor_id, reason)
        contracts, invoices, payments = self._archive_scope(
            self._tenant_scope(tenant_id), stamp
        )
        conversations = self._move_conversations_to_archive(tenant_id, stamp)
        tenant.mark_archived(stamp.archived_at, stamp.archived_by, stamp.reason)
        self.session.flush()
        self.session.expire_all()

        result = ArchiveResult(
            root_entity="tenant",
            root_id=tenant_id,
            stamp=stamp,
            tenants=1,
            contracts=contracts,
            invoices=invoices,
            payments=payments,
            conversations=conversations,
        )
        self._log("tenant_archived", result)
        return result

    def archive_contract(
        self,
        contract_id: UUID,
        actor_id: str | None = None,
        reason: str | None = None,
    ) -> ArchiveResult:
        contract = ContractService(self.session, self._clock)._get_for_update(contract_id)
        if contract.is_archived:
            raise AlreadyArchivedError("contract", str(contract_id))

        stamp = self._stamp(actor_id, reason)
        _, invoices, payments = self._archive_scope(self._contract_scope(contract_id), stamp)
        contract.mark_archived(stamp.archived_at, stamp.archived_by, stamp.reason)
        self.session.flush()
        self.session.expire_all()

        result = ArchiveResult(
            root_entity="contract",
            root_id=contract_id,
            stamp=stamp,
            contracts=1,
            invoices=invoices,
            payments=payments,
        )
        self._log("contract_archived", result)
        return result

    def archive_invoice(
        self,
        invoice_id: UUID,
        actor_id: str | None = None,
        reason: str | None = None,
    ) -> ArchiveResult:
        invoice = InvoiceService(self.session, self._clock)._get_for_update(invoice_id)
        if invoice.is_archived:
            raise AlreadyArchivedError("invoice", str(invoice_id))

        stamp = self._stamp(actor_id, reason)
        _, _, payments = self._archive_scope(self._invoice_scope(invoice_id), stamp)
        invoice.mark_archived(stamp.archived_at, stamp.archived_by, stamp.reason)
        self.session.flush()
        self.session.expire_all()

        result = ArchiveResult(
            root_entity="invoice",
            root_id=invoice_id,
            stamp=stamp,
            invoices=1,
            payments=payments,
        )
        self._log("invoice_archived", result)
        return result

    # -----------------------------------------------------------------
    # Unarchive
    # -----------------------------------------------------------------

    def unarchive_tenant(self, tenant_id: UUID) -> ArchiveResult:
        """
        Restore a tenant and whatever its archive cascade touched.

        Raises:
            TenantNotFoundError: If the tenant doesn't exist.
            NotArchivedError: If the tenant is not archived.
        """
        tenant = TenantService(self.session, self._clock)._get_for_update(tenant_id)
        if not tenant.is_archived:
            raise NotArchivedError("tenant", str(tenant_id))

        stamp = self._root_stamp(tenant)
        tenant.clear_archived()
        self.session.flush()
        contracts, invoices, payments = self._restore_scope(
            self._tenant_scope(tenant_id), stamp
        )
        conversations = self._restore_conversations(tenant_id, stamp)
        self.session.expire_all()

        result = ArchiveResult(
            root_entity="tenant",
            root_id=tenant_id,
            stamp=stamp,
            tenants=1,
            contracts=contracts,
            invoices=invoices,
            payments=payments,
            conversations=conversations,
        )
        self._log("tenant_unarchived", result)
        return result

    def unarchive_contract(self, contract_id: UUID) -> ArchiveResult:
        contract = ContractService(self.session, self._clock)._get_for_update(contract_id)
        if not contract.is_archived:
            raise NotArchivedError("contract", str(contract_id))

        stamp = self._root_stamp(contract)
        contract.clear_archived()
        self.session.flush()
        _, invoices, payments = self._restore_scope(self._contract_scope(contract_id), stamp)
        self.session.expire_all()

        result = ArchiveResult(
            root_entity="contract",
            root_id=contract_id,
            stamp=stamp,
            contracts=1,
            invoices=invoices,
            payments=payments,
        )
        self._log("contract_unarchived", result)
        return result

    def unarchive_invoice(self, invoice_id: UUID) -> ArchiveResult:
        invoice = InvoiceService(self.session, self._clock)._get_for_update(invoice_id)
        if not invoice.is_archived:
            raise NotArchivedError("invoice", str(invoice_id))

        stamp = self._root_stamp(invoice)
        invoice.clear_archived()
        self.session.flush()
        _, _, payments = self._restore_scope(self._invoice_scope(invoice_id), stamp)
        self.session.expire_all()

        result = ArchiveResult(
            root_entity="invoice",
            root_id=invoice_id,
            stamp=stamp,
            invoices=1,
            payments=payments,
        )
        self._log("invoice_unarchived", result)
        return result

    # -----------------------------------------------------------------
    # Remove
    # -----------------------------------------------------------------

    def _lock_payments(self, payment_ids: Select) -> None:
        self.session.execute(
            select(Payment.id)
            .where(Payment.id.in_(payment_ids))
            .order_by(Payment.id)
            .with_for_update(of=Payment)
        ).all()

    def _confirmed_count(self, payment_ids: Select) -> int:
        return self.session.execute(
            select(func.count(Payment.id))
            .where(Payment.id.in_(payment_ids))
            .where(Payment.status == PaymentStatus.CONFIRMED.value)
        ).scalar_one()

    def _delete_rows(self, model, ids: Select | None) -> int:
        if ids is None:
            return 0
        # Materialize first: the id subquery may read the table being deleted.
        id_list = list(self.session.execute(ids).scalars())
        if not id_list:
            return 0
        result = self.session.execute(
            delete(model)
            .where(model.id.in_(id_list))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def _delete_scope(self, scope: _Scope) -> tuple[int, int, int]:
        payments = self._delete_rows(Payment, scope.payment_ids)
        invoices = self._delete_rows(Invoice, scope.invoice_ids)
        contracts = self._delete_rows(Contract, scope.contract_ids)
        return contracts, invoices, payments

    def remove_invoice(self, invoice_id: UUID) -> RemovalResult:
        """
        Permanently delete an archived invoice and its payments.

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist.
            NotArchivedError: If the invoice is not archived.
            HasConfirmedPaymentsError: If any payment on it is CONFIRMED.
        """
        scope = self._invoice_scope(invoice_id)
        self._lock_payments(scope.payment_ids)
        invoice = InvoiceService(self.session, self._clock)._get_for_update(invoice_id)
        if not invoice.is_archived:
            raise NotArchivedError("invoice", str(invoice_id))

        confirmed = self._confirmed_count(scope.payment_ids)
        if confirmed:
            raise HasConfirmedPaymentsError("invoice", str(invoice_id), confirmed)

        _, _, payments = self._delete_scope(scope)
        self.session.delete(invoice)
        self.session.flush()

        result = RemovalResult(
            root_entity="invoice",
            root_id=invoice_id,
            invoices=1,
            payments=payments,
        )
        logger.info(
            "invoice_removed",
            extra={"invoice_id": str(invoice_id), "payments": payments},
        )
        return result

    def remove_contract(self, contract_id: UUID) -> RemovalResult:
        """
        Permanently delete an archived contract, its invoices and payments.

        Frees the unit when the contract was still DRAFT or ACTIVE.

        Raises:
            ContractNotFoundError: If the contract doesn't exist.
            NotArchivedError: If the contract is not archived.
            HasConfirmedPaymentsError: If any payment in the sub-tree is CONFIRMED.
        """
        scope = self._contract_scope(contract_id)
        self._lock_payments(scope.payment_ids)
        contract = ContractService(self.session, self._clock)._get_for_update(contract_id)
        if not contract.is_archived:
            raise NotArchivedError("contract", str(contract_id))

        confirmed = self._confirmed_count(scope.payment_ids)
        if confirmed:
            raise HasConfirmedPaymentsError("contract", str(contract_id), confirmed)

        counts = self._remove_contract_tree(contract)
        self.session.flush()

        result = RemovalResult(root_entity="contract", root_id=contract_id, **counts)
        logger.info(
            "contract_removed",
            extra={
                "contract_id": str(contract_id),
                "invoices": result.invoices,
                "payments": result.payments,
                "freed_units": len(result.freed_unit_ids),
            },
        )
        return result

    def _remove_contract_tree(self, contract: Contract) -> dict:
        _, invoices, payments = self._delete_scope(self._contract_scope(contract.id))
        freed: tuple[UUID, ...] = ()
        if contract.status in OCCUPYING_CONTRACT_STATUSES:
            UnitService(self.session, self._clock).mark_free(contract.unit_id, contract.id)
            freed = (contract.unit_id,)
        self.session.delete(contract)
        return {
            "contracts": 1,
            "invoices": invoices,
            "payments": payments,
            "freed_unit_ids": freed,
        }

    def remove_tenant(self, tenant_id: UUID) -> RemovalResult:
        """
        Permanently delete an archived tenant with its contracts and balance.

        Contracts are removed one by one as in ``remove_contract``; the
        tenant's archived conversations stay in the archive store until
        retention cleanup purges them.

        Raises:
            TenantNotFoundError: If the tenant doesn't exist.
            NotArchivedError: If the tenant is not archived.
            HasConfirmedPaymentsError: If any payment anywhere under the
                tenant is CONFIRMED.
        """
        scope = self._tenant_scope(tenant_id)
        self._lock_payments(scope.payment_ids)
        tenant = TenantService(self.session, self._clock)._get_for_update(tenant_id)
        if not tenant.is_archived:
            raise NotArchivedError("tenant", str(tenant_id))

        confirmed = self._confirmed_count(scope.payment_ids)
        if confirmed:
            raise HasConfirmedPaymentsError("tenant", str(tenant_id), confirmed)

        contracts = self.session.execute(
            select(Contract).where(Contract.tenant_id == tenant_id).order_by(Contract.id)
        ).scalars().all()

        totals = {"contracts": 0, "invoices": 0, "payments": 0}
        freed: list[UUID] = []
        for contract in contracts:
            counts = self._remove_contract_tree(contract)
            totals["contracts"] += counts["contracts"]
            totals["invoices"] += counts["invoices"]
            totals["payments"] += counts["payments"]
            freed.extend(counts["freed_unit_ids"])
        self.session.flush()

        # Conversations opened after the archive still reference the tenant.
        live_conversations = select(Conversation.id).where(Conversation.tenant_id == tenant_id)
        self.session.execute(
            delete(Message)
            .where(Message.conversation_id.in_(live_conversations))
            .execution_options(synchronize_session=False)
        )
        self.session.execute(
            delete(Conversation)
            .where(Conversation.tenant_id == tenant_id)
            .execution_options(synchronize_session=False)
        )

        balances = BalanceService(self.session, self._clock).delete_for_tenant(tenant_id)
        self.session.delete(tenant)
        self.session.flush()

        result = RemovalResult(
            root_entity="tenant",
            root_id=tenant_id,
            contracts=totals["contracts"],
            invoices=totals["invoices"],
            payments=totals["payments"],
            balances=balances,
            freed_unit_ids=tuple(freed),
        )
        logger.info(
            "tenant_removed",
            extra={
                "tenant_id": str(tenant_id),
                "contracts": result.contracts,
                "invoices": result.invoices,
                "payments": result.payments,
            },
        )
        return result

    def _log(self, event: str, result: ArchiveResult) -> None:
        logger.info(
            event,
            extra={
                "root_id": str(result.root_id),
                "contracts": result.contracts,
                "invoices": result.invoices,
                "payments": result.payments,
                "conversations": result.conversations,
                "archived_by": result.stamp.archived_by if result.stamp else None,
            },
        )

    # -----------------------------------------------------------------
    # Retention
    # -----------------------------------------------------------------

    def purge_archived_conversations(self, archived_before: datetime) -> tuple[int, int]:
        """
        Permanently delete archive-store conversations archived before a cutoff.

        Returns:
            (conversations_deleted, messages_deleted)
        """
        ids = list(
            self.session.execute(
                select(ArchivedConversation.id).where(
                    ArchivedConversation.archived_at < archived_before
                )
            ).scalars()
        )
        if not ids:
            return 0, 0

        messages = self.session.execute(
            delete(ArchivedMessage)
            .where(ArchivedMessage.archived_conversation_id.in_(ids))
            .execution_options(synchronize_session=False)
        ).rowcount or 0
        conversations = self.session.execute(
            delete(ArchivedConversation)
            .where(ArchivedConversation.id.in_(ids))
            .execution_options(synchronize_session=False)
        ).rowcount or 0

        logger.info(
            "archived_conversations_purged",
            extra={
                "archived_before": archived_before.isoformat(),
                "conversations": conversations,
                "messages": messages,
            },
        )
        return conversations, messages

    def auto_archive_conversations(
        self,
        inactive_before: datetime,
        archived_at: datetime | None = None,
    ) -> tuple[int, int]:
        """
        Move CLOSED conversations untouched since a cutoff into the archive store.

        Rows are stamped archived_by="system" with a fixed reason, so a later
        tenant restore never brings them back.  OPEN and PENDING conversations
        are left alone however old they are.

        Args:
            inactive_before: Conversations whose updated_at is earlier move.
            archived_at: Stamp time; defaults to the service clock.

        Returns:
            (conversations_archived, messages_archived)
        """
        conversations = self.session.execute(
            select(Conversation)
            .where(Conversation.status == ConversationStatus.CLOSED.value)
            .where(Conversation.updated_at < inactive_before)
            .order_by(Conversation.id)
        ).scalars().all()
        if not conversations:
            return 0, 0

        stamp = ArchiveStamp(
            archived_at=archived_at or self._clock.now(),
            archived_by=AUTO_ARCHIVE_ACTOR,
            reason=AUTO_ARCHIVE_REASON,
        )
        messages = self._copy_to_archive_store(conversations, stamp)

        logger.info(
            "closed_conversations_auto_archived",
            extra={
                "inactive_before": inactive_before.isoformat(),
                "conversations": len(conversations),
                "messages": messages,
            },
        )
        return len(conversations), messages
