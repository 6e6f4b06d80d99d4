"""
Sweep locks -- optional cross-instance exclusion for background sweeps.

Contract:
    ``acquire(session, name)`` is called inside the sweep's transaction.
    True means this instance may run the sweep; the lock is released when
    the transaction ends (commit or rollback).

Architecture: rental_batch.  Sweeps are idempotent on their own; the
    advisory lock only keeps two instances from doing the same work twice.
"""

from __future__ import annotations

import hashlib
from typing import Protocol, runtime_checkable

from sqlalchemy import text
from sqlalchemy.orm import Session

from rental_kernel.logging_config import get_logger

logger = get_logger("batch.locks")


def advisory_key(name: str) -> int:
    """Stable signed 64-bit key for a sweep name."""
    digest = hashlib.sha256(f"rental_batch:{name}".encode()).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


@runtime_checkable
class SweepLock(Protocol):
    def acquire(self, session: Session, name: str) -> bool: ...


class NullSweepLock:
    """Always grants.  Single-instance deployments and SQLite."""

    def acquire(self, session: Session, name: str) -> bool:
        return True


class PostgresAdvisoryLock:
    """Transaction-scoped ``pg_try_advisory_xact_lock`` keyed by sweep name."""

    def acquire(self, session: Session, name: str) -> bool:
        key = advisory_key(name)
        acquired = bool(
            session.execute(
                text("SELECT pg_try_advisory_xact_lock(:key)"), {"key": key}
            ).scalar_one()
        )
        if not acquired:
            logger.info("sweep_lock_busy", extra={"sweep_name": name, "lock_key": key})
        return acquired


def lock_for(session: Session, enabled: bool = True) -> SweepLock:
    """Advisory lock on PostgreSQL when enabled, otherwise a no-op lock."""
    bind = session.get_bind()
    if enabled and bind.dialect.name == "postgresql":
        return PostgresAdvisoryLock()
    return NullSweepLock()
