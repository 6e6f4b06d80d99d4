"""Tests for BalanceService: lazy creation, credit and administrative reset."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from rental_kernel.exceptions import TenantNotFoundError
from rental_kernel.models.balance import Balance
from rental_kernel.services.balance_service import BalanceService


@pytest.fixture
def balance_service(session, deterministic_clock):
    return BalanceService(session, deterministic_clock)


def _row_count(session, tenant_id) -> int:
    return session.execute(
        select(func.count(Balance.id)).where(Balance.tenant_id == tenant_id)
    ).scalar_one()


class TestGet:
    def test_first_read_creates_zero_balance(self, session, balance_service, create_tenant):
        tenant = create_tenant()

        balance = balance_service.get(tenant.id)

        assert balance.tenant_id == tenant.id
        assert balance.current == Decimal("0")
        assert _row_count(session, tenant.id) == 1

    def test_repeated_reads_keep_one_row(self, session, balance_service, create_tenant):
        tenant = create_tenant()
        balance_service.get(tenant.id)
        balance_service.get(tenant.id)

        assert _row_count(session, tenant.id) == 1

    def test_unknown_tenant(self, balance_service):
        with pytest.raises(TenantNotFoundError):
            balance_service.get(uuid4())


class TestCredit:
    def test_credit_creates_row_with_amount(self, session, balance_service, create_tenant):
        tenant = create_tenant()

        balance = balance_service.credit(tenant.id, Decimal("250"))

        assert balance.current == Decimal("250")
        assert _row_count(session, tenant.id) == 1

    def test_credits_accumulate(self, balance_service, create_tenant):
        tenant = create_tenant()
        balance_service.credit(tenant.id, Decimal("250"))
        balance_service.credit(tenant.id, Decimal("750"))

        assert balance_service.get(tenant.id).current == Decimal("1000")


class TestReset:
    def test_reset_to_zero(self, balance_service, create_tenant, captured_logs):
        tenant = create_tenant()
        balance_service.credit(tenant.id, Decimal("500"))

        balance = balance_service.reset(tenant.id)

        assert balance.current == Decimal("0")
        event = [r for r in captured_logs() if r["message"] == "balance_reset"][0]
        assert Decimal(event["previous"]) == Decimal("500")

    def test_reset_to_value_without_existing_row(self, balance_service, create_tenant):
        tenant = create_tenant()

        assert balance_service.reset(tenant.id, "1234.5").current == Decimal("1234.5")

    def test_reset_unknown_tenant(self, balance_service):
        with pytest.raises(TenantNotFoundError):
            balance_service.reset(uuid4())
