"""
BalanceService -- per-tenant running balance via a locked upsert row.

Responsibility:
    Maintains exactly one Balance row per tenant.  ``credit`` is called by
    PaymentService on confirmation; ``reset`` is the administrative override;
    ``get`` lazily creates the row at zero.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - One row per tenant (uq_balance_tenant).
    - The row is read with ``SELECT ... FOR UPDATE`` before it is changed,
      so concurrent credits are applied one after the other.
    - First creation happens inside a savepoint.  If a concurrent
      transaction inserted the row first, the IntegrityError is caught, the
      savepoint rolled back, and the existing row re-read with lock and
      incremented.  Other work in the caller's transaction is preserved.

Failure modes:
    - TenantNotFoundError from ``get``/``reset`` on an unknown tenant.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from rental_kernel.db.types import ZERO, to_money
from rental_kernel.domain.dtos import BalanceInfo
from rental_kernel.exceptions import TenantNotFoundError
from rental_kernel.logging_config import get_logger
from rental_kernel.models.balance import Balance
from rental_kernel.models.tenant import Tenant
from rental_kernel.services.base import BaseService

logger = get_logger("services.balance")


class BalanceService(BaseService[Balance]):
    """
    Service for tenant balances.

    Usage:
        with session_scope() as session:
            BalanceService(session).credit(tenant_id, Decimal("1000000"))
    """

    def _lock(self, tenant_id: UUID) -> Balance | None:
        return self.session.execute(self._locked_select(tenant_id)).scalar_one_or_none()

    def _locked_select(self, tenant_id: UUID):
        return (
            select(Balance)
            .where(Balance.tenant_id == tenant_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    def _require_tenant(self, tenant_id: UUID) -> None:
        if self.session.get(Tenant, tenant_id) is None:
            raise TenantNotFoundError(str(tenant_id))

    def _upsert(self, tenant_id: UUID, initial: Decimal) -> tuple[Balance, bool]:
        """
        Return the locked balance row, creating it with ``initial`` if absent.

        Returns:
            (row, created) -- created is True when this call inserted it.
        """
        balance = self._lock(tenant_id)
        if balance is not None:
            return balance, False

        savepoint = self.session.begin_nested()
        try:
            balance = Balance(tenant_id=tenant_id, current=initial)
            self.session.add(balance)
            self.session.flush()
            savepoint.commit()
            return balance, True
        except IntegrityError:
            # Another transaction created the row; use it.
            logger.debug(
                "balance_create_race_retry",
                extra={"tenant_id": str(tenant_id)},
            )
            savepoint.rollback()
            balance = self.session.execute(self._locked_select(tenant_id)).scalar_one()
            return balance, False

    def get(self, tenant_id: UUID) -> BalanceInfo:
        """
        Get a tenant's balance, creating it at zero on first access.

        Raises:
            TenantNotFoundError: If the tenant doesn't exist.
        """
        self._require_tenant(tenant_id)
        existing = self.session.execute(
            select(Balance).where(Balance.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if existing is not None:
            return BalanceInfo.from_model(existing)

        balance, created = self._upsert(tenant_id, ZERO)
        if created:
            logger.info("balance_created", extra={"tenant_id": str(tenant_id)})
        return BalanceInfo.from_model(balance)

    def credit(self, tenant_id: UUID, amount: Decimal) -> BalanceInfo:
        """
        Increase a tenant's balance by a confirmed payment amount.

        Postconditions:
            - The row exists and current has grown by exactly ``amount``.
        """
        value = to_money(amount)
        balance, created = self._upsert(tenant_id, value)
        if not created:
            balance.current = balance.current + value
            self.session.flush()

        logger.info(
            "balance_credited",
            extra={
                "tenant_id": str(tenant_id),
                "amount": str(value),
                "current": str(balance.current),
            },
        )
        return BalanceInfo.from_model(balance)

    def reset(
        self,
        tenant_id: UUID,
        current: Decimal | str | int = ZERO,
    ) -> BalanceInfo:
        """
        Set a tenant's balance to ``current`` (default zero).

        Raises:
            TenantNotFoundError: If the tenant doesn't exist.
            ValueError / TypeError: If current is not a valid amount.
        """
        value = to_money(current)
        self._require_tenant(tenant_id)
        balance, created = self._upsert(tenant_id, value)
        previous = None if created else balance.current
        if not created:
            balance.current = value
            self.session.flush()

        logger.info(
            "balance_reset",
            extra={
                "tenant_id": str(tenant_id),
                "previous": str(previous) if previous is not None else None,
                "current": str(value),
            },
        )
        return BalanceInfo.from_model(balance)

    def delete_for_tenant(self, tenant_id: UUID) -> int:
        result = self.session.execute(
            delete(Balance)
            .where(Balance.tenant_id == tenant_id)
        )
        return result.rowcount or 0
