"""Sweep locks: key derivation, dialect selection and PostgreSQL exclusion."""

import pytest

from rental_batch.locks import (
    NullSweepLock,
    PostgresAdvisoryLock,
    advisory_key,
    lock_for,
)


class TestAdvisoryKey:
    def test_stable(self):
        assert advisory_key("overdue") == advisory_key("overdue")

    def test_distinct_per_sweep(self):
        assert advisory_key("overdue") != advisory_key("reminders")

    def test_fits_signed_bigint(self):
        for name in ("overdue", "reminders", "backfill", "cleanup"):
            assert -(2**63) <= advisory_key(name) < 2**63


class TestLockFor:
    def test_disabled_is_null_lock(self, session):
        assert isinstance(lock_for(session, enabled=False), NullSweepLock)

    def test_null_lock_always_grants(self, session):
        assert NullSweepLock().acquire(session, "overdue") is True


@pytest.mark.postgres
@pytest.mark.slow_locks
class TestPostgresAdvisoryLock:
    def test_second_session_is_refused(self, session_factory):
        first = session_factory()
        second = session_factory()
        try:
            assert isinstance(lock_for(first), PostgresAdvisoryLock)
            assert PostgresAdvisoryLock().acquire(first, "overdue") is True
            assert PostgresAdvisoryLock().acquire(second, "overdue") is False
            first.rollback()
            assert PostgresAdvisoryLock().acquire(second, "overdue") is True
        finally:
            first.close()
            second.rollback()
            second.close()
