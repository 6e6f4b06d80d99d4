"""
rental_services.lease_engine -- LeaseEngine, the public facade of the kernel.

Responsibility:
    The single entry point external callers (HTTP handlers, bot handlers,
    admin tools) use.  Each operation:

        1. checks the caller's permission before touching storage,
        2. runs the kernel services inside one ``session_scope`` transaction
           (commit on success, rollback and re-raise on failure),
        3. dispatches admin notifications after the commit, fire-and-forget.

    Identifiers may be passed as ``UUID`` or ``str``; money as ``Decimal``,
    ``int`` or decimal ``str``.  Every result is a frozen DTO.

Architecture position:
    Services -- orchestration over ``rental_kernel``.
        rental_services/ -> rental_kernel/   (allowed)
        rental_kernel/   -> rental_services/ (FORBIDDEN)

Invariants enforced:
    - Permission denial raises PermissionDeniedError with no storage access.
    - A notification failure never rolls back the financial transaction.
    - No financial state is cached across calls.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Mapping, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from rental_kernel.db.engine import session_scope
from rental_kernel.db.types import round_money
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.dtos import (
    ArchiveResult,
    BalanceInfo,
    ContractInfo,
    InvoiceInfo,
    PaymentInfo,
    RemovalResult,
    TenantInfo,
    UnitInfo,
)
from rental_kernel.domain.lifecycle import (
    ContractStatus,
    InvoiceStatus,
    PaymentMethod,
    PaymentStatus,
    UnitStatus,
)
from rental_kernel.exceptions import PermissionDeniedError
from rental_kernel.logging_config import LogContext, get_logger
from rental_kernel.selectors.archive_selector import ArchiveSelector, ArchiveSummary
from rental_kernel.selectors.invoice_selector import InvoiceSelector
from rental_kernel.selectors.payment_selector import PaymentSelector
from rental_kernel.services.archive_service import ArchiveService
from rental_kernel.services.balance_service import BalanceService
from rental_kernel.services.contract_service import ContractService
from rental_kernel.services.invoice_service import InvoiceService
from rental_kernel.services.payment_service import PaymentService
from rental_kernel.services.tenant_service import TenantService
from rental_kernel.services.unit_service import UnitService
from rental_services import permissions as perms
from rental_services.notifications import (
    ADMINS,
    CONTRACT_CREATED,
    PAYMENT_CREATED,
    NotificationDispatcher,
    NullDispatcher,
    deliver,
)
from rental_services.permissions import AllowAll, PermissionChecker

logger = get_logger("services.lease_engine")

T = TypeVar("T")


def as_uuid(value: UUID | str, field: str = "id") -> UUID:
    """
    Coerce a plain identifier to UUID.

    Raises:
        ValueError: If ``value`` is not a valid UUID.
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise ValueError(f"{field} is not a valid UUID: {value!r}") from exc


class LeaseEngine:
    """
    Facade over the rental kernel.

    Contract:
        Every public method runs in its own transaction and returns DTOs or
        raises a typed ``RentalKernelError`` (or ValueError/TypeError for
        malformed input).

    Usage:
        engine = LeaseEngine(get_session_factory(), notifier=LoggingDispatcher())
        contract = engine.create_contract(actor, tenant_id, unit_id,
                                          date(2024, 1, 1), date(2024, 12, 31),
                                          Decimal("1000000"))
        engine.change_contract_status(actor, contract.id, ContractStatus.ACTIVE)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        permission_checker: PermissionChecker | None = None,
        notifier: NotificationDispatcher | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._permissions = permission_checker or AllowAll()
        self._notifier = notifier or NullDispatcher()
        self._clock = clock or SystemClock()

    # -----------------------------------------------------------------
    # Plumbing
    # -----------------------------------------------------------------

    def _authorize(self, actor_id: str, permission: str) -> None:
        if not self._permissions(str(actor_id), permission):
            logger.warning(
                "permission_denied",
                extra={"actor_id": str(actor_id), "permission": permission},
            )
            raise PermissionDeniedError(str(actor_id), permission)

    def _run(
        self,
        actor_id: str,
        permission: str,
        operation: Callable[[Session], T],
        **context: Any,
    ) -> T:
        """Authorize, then run ``operation`` in one committed transaction."""
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor_id),
            **{k: str(v) for k, v in context.items() if v is not None},
        ):
            self._authorize(actor_id, permission)
            with session_scope(self._session_factory) as session:
                return operation(session)

    def _notify(self, kind: str, recipient_id: str, payload: Mapping[str, Any]) -> None:
        deliver(self._notifier, kind, recipient_id, payload)

    # -----------------------------------------------------------------
    # Units and tenants
    # -----------------------------------------------------------------

    def create_unit(
        self,
        actor_id: str,
        name: str,
        monthly_price: Decimal | str | int,
        floor: int | None = None,
        area: Decimal | str | int | None = None,
    ) -> UnitInfo:
        return self._run(
            actor_id,
            perms.UNIT_CREATE,
            lambda s: UnitService(s, self._clock).create(name, monthly_price, floor, area),
        )

    def get_unit(self, actor_id: str, unit_id: UUID | str) -> UnitInfo:
        uid = as_uuid(unit_id, "unit_id")
        return self._run(actor_id, perms.UNIT_READ, lambda s: UnitService(s).get(uid))

    def list_units(self, actor_id: str, status: UnitStatus | None = None) -> list[UnitInfo]:
        return self._run(actor_id, perms.UNIT_READ, lambda s: UnitService(s).list(status))

    def create_tenant(
        self,
        actor_id: str,
        full_name: str,
        email: str | None = None,
        phone: str | None = None,
    ) -> TenantInfo:
        return self._run(
            actor_id,
            perms.TENANT_CREATE,
            lambda s: TenantService(s, self._clock).create(full_name, email, phone),
        )

    def get_tenant(self, actor_id: str, tenant_id: UUID | str) -> TenantInfo:
        tid = as_uuid(tenant_id, "tenant_id")
        return self._run(
            actor_id, perms.TENANT_READ, lambda s: TenantService(s).get(tid), tenant_id=tid
        )

    # -----------------------------------------------------------------
    # Contracts
    # -----------------------------------------------------------------

    def create_contract(
        self,
        actor_id: str,
        tenant_id: UUID | str,
        unit_id: UUID | str,
        start_date: date,
        end_date: date,
        amount: Decimal | str | int,
        notes: str | None = None,
    ) -> ContractInfo:
        """
        Create a DRAFT contract; the unit becomes BUSY in the same transaction.

        Raises:
            PermissionDeniedError, ValueError, TenantNotFoundError,
            UnitNotFoundError, UnitUnavailableError.
        """
        tid = as_uuid(tenant_id, "tenant_id")
        uid = as_uuid(unit_id, "unit_id")
        contract = self._run(
            actor_id,
            perms.CONTRACT_CREATE,
            lambda s: ContractService(s, self._clock).create(
                tid, uid, start_date, end_date, amount, notes
            ),
            tenant_id=tid,
        )
        self._notify(
            CONTRACT_CREATED,
            ADMINS,
            {
                "contract_id": str(contract.id),
                "tenant_id": str(contract.tenant_id),
                "unit_id": str(contract.unit_id),
                "amount": str(round_money(contract.amount)),
                "start_date": contract.start_date.isoformat(),
                "end_date": contract.end_date.isoformat(),
                "created_by": str(actor_id),
            },
        )
        return contract

    def get_contract(self, actor_id: str, contract_id: UUID | str) -> ContractInfo:
        cid = as_uuid(contract_id, "contract_id")
        return self._run(
            actor_id,
            perms.CONTRACT_READ,
            lambda s: ContractService(s).get(cid),
            contract_id=cid,
        )

    def change_contract_status(
        self,
        actor_id: str,
        contract_id: UUID | str,
        new_status: ContractStatus | str,
    ) -> ContractInfo:
        """
        Raises:
            PermissionDeniedError, ContractNotFoundError, InvalidTransitionError.
        """
        cid = as_uuid(contract_id, "contract_id")
        requested = ContractStatus(new_status)
        return self._run(
            actor_id,
            perms.CONTRACT_TRANSITION,
            lambda s: ContractService(s, self._clock).change_status(cid, requested),
            contract_id=cid,
        )

    # -----------------------------------------------------------------
    # Invoices
    # -----------------------------------------------------------------

    def create_invoice(
        self,
        actor_id: str,
        contract_id: UUID | str,
        due_date: date,
        amount: Decimal | str | int,
    ) -> InvoiceInfo:
        cid = as_uuid(contract_id, "contract_id")
        return self._run(
            actor_id,
            perms.INVOICE_CREATE,
            lambda s: InvoiceService(s, self._clock).create(cid, due_date, amount),
            contract_id=cid,
        )

    def get_invoice(self, actor_id: str, invoice_id: UUID | str) -> InvoiceInfo:
        iid = as_uuid(invoice_id, "invoice_id")
        return self._run(actor_id, perms.INVOICE_READ, lambda s: InvoiceService(s).get(iid))

    def list_invoices(
        self,
        actor_id: str,
        tenant_id: UUID | str | None = None,
        contract_id: UUID | str | None = None,
        status: InvoiceStatus | str | None = None,
        include_archived: bool = False,
    ) -> list[InvoiceInfo]:
        tid = as_uuid(tenant_id, "tenant_id") if tenant_id is not None else None
        cid = as_uuid(contract_id, "contract_id") if contract_id is not None else None
        wanted = InvoiceStatus(status) if status is not None else None
        return self._run(
            actor_id,
            perms.INVOICE_READ,
            lambda s: InvoiceSelector(s).list(
                tenant_id=tid,
                contract_id=cid,
                status=wanted,
                include_archived=include_archived,
            ),
        )

    def outstanding_amount(self, actor_id: str, invoice_id: UUID | str) -> Decimal:
        iid = as_uuid(invoice_id, "invoice_id")
        return self._run(
            actor_id,
            perms.INVOICE_READ,
            lambda s: InvoiceSelector(s).outstanding_amount(iid),
        )

    # -----------------------------------------------------------------
    # Payments
    # -----------------------------------------------------------------

    def create_payment(
        self,
        actor_id: str,
        invoice_id: UUID | str,
        method: PaymentMethod | str,
        amount: Decimal | str | int,
    ) -> PaymentInfo:
        """
        Record a payment.  ONLINE payments are confirmed in the same transaction.

        Raises:
            PermissionDeniedError, InvoiceNotFoundError, ValueError.
        """
        iid = as_uuid(invoice_id, "invoice_id")
        payment_method = PaymentMethod(method)
        payment = self._run(
            actor_id,
            perms.PAYMENT_CREATE,
            lambda s: PaymentService(s, self._clock).create(iid, payment_method, amount),
        )
        self._notify(
            PAYMENT_CREATED,
            ADMINS,
            {
                "payment_id": str(payment.id),
                "invoice_id": str(payment.invoice_id),
                "method": payment.method.value,
                "amount": str(round_money(payment.amount)),
                "status": payment.status.value,
            },
        )
        return payment

    def get_payment(self, actor_id: str, payment_id: UUID | str) -> PaymentInfo:
        pid = as_uuid(payment_id, "payment_id")
        return self._run(actor_id, perms.PAYMENT_READ, lambda s: PaymentService(s).get(pid))

    def list_payments(self, actor_id: str, invoice_id: UUID | str) -> list[PaymentInfo]:
        iid = as_uuid(invoice_id, "invoice_id")
        return self._run(
            actor_id,
            perms.PAYMENT_READ,
            lambda s: PaymentSelector(s).list_for_invoice(iid),
        )

    def confirm_payment(self, actor_id: str, payment_id: UUID | str) -> PaymentInfo:
        """
        Confirm a payment.  Idempotent for an already CONFIRMED payment.

        Raises:
            PermissionDeniedError, PaymentNotFoundError, PaymentCancelledError.
        """
        pid = as_uuid(payment_id, "payment_id")
        return self._run(
            actor_id,
            perms.PAYMENT_CONFIRM,
            lambda s: PaymentService(s, self._clock).confirm(pid),
        )

    def cancel_payment(self, actor_id: str, payment_id: UUID | str) -> PaymentInfo:
        pid = as_uuid(payment_id, "payment_id")
        return self._run(
            actor_id,
            perms.PAYMENT_CANCEL,
            lambda s: PaymentService(s, self._clock).cancel(pid),
        )

    def update_payment_status(
        self,
        actor_id: str,
        payment_id: UUID | str,
        new_status: PaymentStatus | str,
    ) -> PaymentInfo:
        pid = as_uuid(payment_id, "payment_id")
        requested = PaymentStatus(new_status)
        permission = (
            perms.PAYMENT_CONFIRM if requested == PaymentStatus.CONFIRMED else perms.PAYMENT_CANCEL
        )
        return self._run(
            actor_id,
            permission,
            lambda s: PaymentService(s, self._clock).update_status(pid, requested),
        )

    # -----------------------------------------------------------------
    # Balances
    # -----------------------------------------------------------------

    def get_balance(self, actor_id: str, tenant_id: UUID | str) -> BalanceInfo:
        tid = as_uuid(tenant_id, "tenant_id")
        return self._run(
            actor_id,
            perms.BALANCE_READ,
            lambda s: BalanceService(s, self._clock).get(tid),
            tenant_id=tid,
        )

    def reset_balance(
        self,
        actor_id: str,
        tenant_id: UUID | str,
        current: Decimal | str | int = Decimal("0"),
    ) -> BalanceInfo:
        tid = as_uuid(tenant_id, "tenant_id")
        return self._run(
            actor_id,
            perms.BALANCE_RESET,
            lambda s: BalanceService(s, self._clock).reset(tid, current),
            tenant_id=tid,
        )

    # -----------------------------------------------------------------
    # Archive
    # -----------------------------------------------------------------

    def archive_tenant(
        self, actor_id: str, tenant_id: UUID | str, reason: str | None = None
    ) -> ArchiveResult:
        tid = as_uuid(tenant_id, "tenant_id")
        return self._run(
            actor_id,
            perms.ARCHIVE,
            lambda s: ArchiveService(s, self._clock).archive_tenant(tid, str(actor_id), reason),
            tenant_id=tid,
        )

    def archive_contract(
        self, actor_id: str, contract_id: UUID | str, reason: str | None = None
    ) -> ArchiveResult:
        cid = as_uuid(contract_id, "contract_id")
        return self._run(
            actor_id,
            perms.ARCHIVE,
            lambda s: ArchiveService(s, self._clock).archive_contract(cid, str(actor_id), reason),
            contract_id=cid,
        )

    def archive_invoice(
        self, actor_id: str, invoice_id: UUID | str, reason: str | None = None
    ) -> ArchiveResult:
        iid = as_uuid(invoice_id, "invoice_id")
        return self._run(
            actor_id,
            perms.ARCHIVE,
            lambda s: ArchiveService(s, self._clock).archive_invoice(iid, str(actor_id), reason),
        )

    def unarchive_tenant(self, actor_id: str, tenant_id: UUID | str) -> ArchiveResult:
        tid = as_uuid(tenant_id, "tenant_id")
        return self._run(
            actor_id,
            perms.UNARCHIVE,
            lambda s: ArchiveService(s, self._clock).unarchive_tenant(tid),
            tenant_id=tid,
        )

    def unarchive_contract(self, actor_id: str, contract_id: UUID | str) -> ArchiveResult:
        cid = as_uuid(contract_id, "contract_id")
        return self._run(
            actor_id,
            perms.UNARCHIVE,
            lambda s: ArchiveService(s, self._clock).unarchive_contract(cid),
            contract_id=cid,
        )

    def unarchive_invoice(self, actor_id: str, invoice_id: UUID | str) -> ArchiveResult:
        iid = as_uuid(invoice_id, "invoice_id")
        return self._run(
            actor_id,
            perms.UNARCHIVE,
            lambda s: ArchiveService(s, self._clock).unarchive_invoice(iid),
        )

    def remove_tenant(self, actor_id: str, tenant_id: UUID | str) -> RemovalResult:
        tid = as_uuid(tenant_id, "tenant_id")
        return self._run(
            actor_id,
            perms.REMOVE,
            lambda s: ArchiveService(s, self._clock).remove_tenant(tid),
            tenant_id=tid,
        )

    def remove_contract(self, actor_id: str, contract_id: UUID | str) -> RemovalResult:
        cid = as_uuid(contract_id, "contract_id")
        return self._run(
            actor_id,
            perms.REMOVE,
            lambda s: ArchiveService(s, self._clock).remove_contract(cid),
            contract_id=cid,
        )

    def remove_invoice(self, actor_id: str, invoice_id: UUID | str) -> RemovalResult:
        iid = as_uuid(invoice_id, "invoice_id")
        return self._run(
            actor_id,
            perms.REMOVE,
            lambda s: ArchiveService(s, self._clock).remove_invoice(iid),
        )

    def archive_summary(self, actor_id: str) -> ArchiveSummary:
        return self._run(
            actor_id, perms.ARCHIVE_READ, lambda s: ArchiveSelector(s).summary()
        )
