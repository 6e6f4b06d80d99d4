"""
rental_batch -- Background sweeps and their in-process scheduler.

Architecture:
    rental_batch/ is a top-level package.  Nothing in rental_kernel/ or
    rental_services/ imports from rental_batch.
"""

from rental_batch.locks import NullSweepLock, PostgresAdvisoryLock, advisory_key, lock_for
from rental_batch.scheduler import ScheduledSweep, SweepScheduler
from rental_batch.sweeps import (
    ArchiveRetentionCleanup,
    AutoArchiveSweep,
    MissingInvoiceBackfill,
    OverdueSweep,
    PaymentReminderSweep,
    Sweep,
)

__all__ = [
    "ArchiveRetentionCleanup",
    "AutoArchiveSweep",
    "MissingInvoiceBackfill",
    "NullSweepLock",
    "OverdueSweep",
    "PaymentReminderSweep",
    "PostgresAdvisoryLock",
    "ScheduledSweep",
    "Sweep",
    "SweepScheduler",
    "advisory_key",
    "lock_for",
]
