"""
PaymentService -- payment ledger with idempotent confirmation.

Responsibility:
    Records payments against invoices and confirms them.  Confirmation is
    the only path that marks an invoice PAID and the only path that credits
    a tenant balance.

Architecture position:
    Kernel > Services.  Uses BalanceService for the credit.

Invariants enforced:
    - CONFIRMED is terminal.  Confirming a CONFIRMED payment returns it
      unchanged and credits nothing.
    - CANCELLED is terminal.  Confirming it raises PaymentCancelledError.
    - Lock order is payment row, then invoice row, then balance row.  The
      confirmed sum is aggregated only after the invoice lock is held, so
      concurrent confirmations on one invoice see each other's amounts.
    - invoice.status becomes PAID once the confirmed sum covers the invoice
      amount, and is never reverted.

Failure modes:
    - InvoiceNotFoundError / PaymentNotFoundError.
    - ValueError on non-positive amount; TypeError on float amount.
    - InvalidTransitionError when moving a CONFIRMED payment elsewhere.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from rental_kernel.db.types import ZERO, to_money, to_positive_money
from rental_kernel.domain.dtos import PaymentInfo
from rental_kernel.domain.lifecycle import (
    InvoiceStatus,
    PaymentMethod,
    PaymentStatus,
    allowed_payment_transitions,
)
from rental_kernel.exceptions import (
    InvalidTransitionError,
    PaymentCancelledError,
    PaymentNotFoundError,
)
from rental_kernel.logging_config import get_logger
from rental_kernel.models.contract import Contract
from rental_kernel.models.payment import Payment
from rental_kernel.services.balance_service import BalanceService
from rental_kernel.services.base import BaseService
from rental_kernel.services.invoice_service import InvoiceService

logger = get_logger("services.payment")


class PaymentService(BaseService[Payment]):
    """
    Service for the payment ledger.

    Contract:
        All public methods return PaymentInfo DTOs and flush only.
    """

    def _get_by_id(self, payment_id: UUID) -> Payment:
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment

    def _get_for_update(self, payment_id: UUID) -> Payment:
        payment = self.session.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment

    def get(self, payment_id: UUID) -> PaymentInfo:
        return PaymentInfo.from_model(self._get_by_id(payment_id))

    def confirmed_total(self, invoice_id: UUID) -> Decimal:
        """Sum of CONFIRMED payment amounts on an invoice."""
        total = self.session.execute(
            select(func.coalesce(func.sum(Payment.amount), 0))
            .where(Payment.invoice_id == invoice_id)
            .where(Payment.status == PaymentStatus.CONFIRMED.value)
        ).scalar_one()
        if total is None:
            return ZERO
        return to_money(str(total))

    def create(
        self,
        invoice_id: UUID,
        method: PaymentMethod,
        amount: Decimal | str | int,
    ) -> PaymentInfo:
        """
        Record a PENDING payment; ONLINE payments are confirmed immediately.

        Args:
            invoice_id: Invoice being paid.
            method: ONLINE or OFFLINE.
            amount: Amount received.

        Returns:
            PaymentInfo (CONFIRMED for ONLINE, PENDING for OFFLINE).

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist.
            ValueError: If amount is not positive or method is unknown.
        """
        value = to_positive_money(amount)
        payment_method = PaymentMethod(method)
        InvoiceService(self.session, self._clock)._get_by_id(invoice_id)

        payment = Payment(
            invoice_id=invoice_id,
            method=payment_method,
            amount=value,
            status=PaymentStatus.PENDING,
        )
        self.session.add(payment)
        self.session.flush()

        logger.info(
            "payment_created",
            extra={
                "payment_id": str(payment.id),
                "invoice_id": str(invoice_id),
                "method": payment_method.value,
                "amount": str(value),
            },
        )

        if payment_method == PaymentMethod.ONLINE:
            return self.confirm(payment.id)
        return PaymentInfo.from_model(payment)

    def confirm(self, payment_id: UUID) -> PaymentInfo:
        """
        Confirm a payment and apply its financial effects.

        Steps, all in the caller's transaction:
            1. Lock the payment.  Already CONFIRMED: return unchanged.
               CANCELLED: raise.
            2. Mark CONFIRMED with paid_at from the clock.
            3. Lock the invoice and load its contract for the tenant.
            4. Aggregate the confirmed payments on the invoice.
            5. Flip the invoice to PAID when the sum covers its amount.
            6. Credit the tenant balance by the payment amount.

        Raises:
            PaymentNotFoundError: If the payment doesn't exist.
            PaymentCancelledError: If the payment was cancelled.
        """
        payment = self._get_for_update(payment_id)

        if payment.status == PaymentStatus.CONFIRMED:
            logger.info(
                "payment_already_confirmed",
                extra={"payment_id": str(payment_id)},
            )
            return PaymentInfo.from_model(payment)

        if payment.status == PaymentStatus.CANCELLED:
            logger.warning(
                "payment_confirm_rejected_cancelled",
                extra={"payment_id": str(payment_id)},
            )
            raise PaymentCancelledError(str(payment_id))

        payment.status = PaymentStatus.CONFIRMED
        payment.paid_at = self._clock.now()
        self.session.flush()

        invoice = InvoiceService(self.session, self._clock)._get_for_update(
            payment.invoice_id
        )
        contract = self.session.get(Contract, invoice.contract_id)

        total = self.confirmed_total(invoice.id)
        # INVARIANT: PAID is terminal; only ever set here, never cleared.
        if total >= invoice.amount and invoice.status != InvoiceStatus.PAID:
            invoice.status = InvoiceStatus.PAID
            self.session.flush()
            logger.info(
                "invoice_paid",
                extra={
                    "invoice_id": str(invoice.id),
                    "confirmed_total": str(total),
                    "amount": str(invoice.amount),
                },
            )

        BalanceService(self.session, self._clock).credit(contract.tenant_id, payment.amount)

        logger.info(
            "payment_confirmed",
            extra={
                "payment_id": str(payment_id),
                "invoice_id": str(invoice.id),
                "tenant_id": str(contract.tenant_id),
                "amount": str(payment.amount),
                "confirmed_total": str(total),
            },
        )
        return PaymentInfo.from_model(payment)

    def update_status(self, payment_id: UUID, new_status: PaymentStatus) -> PaymentInfo:
        """
        Change a payment's status.

        CONFIRMED routes through ``confirm``.  PENDING -> CANCELLED is a plain
        field update with no financial effect.  Re-requesting the current
        status of a PENDING or CANCELLED payment is a no-op.

        Raises:
            PaymentNotFoundError: If the payment doesn't exist.
            PaymentCancelledError: If confirming a cancelled payment.
            InvalidTransitionError: For any other edge off a terminal status.
        """
        requested = PaymentStatus(new_status)
        if requested == PaymentStatus.CONFIRMED:
            return self.confirm(payment_id)

        payment = self._get_for_update(payment_id)
        current = PaymentStatus(payment.status)

        if current == requested and current != PaymentStatus.CONFIRMED:
            return PaymentInfo.from_model(payment)

        if requested not in allowed_payment_transitions(current):
            logger.warning(
                "payment_transition_rejected",
                extra={
                    "payment_id": str(payment_id),
                    "current_status": current.value,
                    "requested_status": requested.value,
                },
            )
            raise InvalidTransitionError(
                "payment",
                str(payment_id),
                current.value,
                requested.value,
                allowed_payment_transitions(current),
            )

        payment.status = requested
        self.session.flush()

        logger.info(
            "payment_status_changed",
            extra={
                "payment_id": str(payment_id),
                "from_status": current.value,
                "to_status": requested.value,
            },
        )
        return PaymentInfo.from_model(payment)

    def cancel(self, payment_id: UUID) -> PaymentInfo:
        return self.update_status(payment_id, PaymentStatus.CANCELLED)
