"""
SweepScheduler -- In-process polling scheduler for the background sweeps.

Contract:
    Polls on a short interval and runs every sweep whose own interval has
    elapsed.  Each sweep run gets its own transaction; notifications from
    the sweep's outbox are delivered only after that transaction commits.

Architecture: rental_batch.  Uses rental_kernel for storage and
    rental_services.notifications for delivery.

Invariants enforced:
    - All timestamps from the injected Clock.
    - A failing sweep is logged and does not stop the others.
    - Graceful shutdown (respects stop signal between sweeps).
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Iterable
from uuid import uuid4

from sqlalchemy.orm import Session

from rental_kernel.config import KernelSettings
from rental_kernel.db.engine import session_scope
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.dtos import SweepResult
from rental_kernel.logging_config import LogContext, get_logger
from rental_batch.locks import lock_for
from rental_batch.sweeps import (
    ArchiveRetentionCleanup,
    AutoArchiveSweep,
    MissingInvoiceBackfill,
    OverdueSweep,
    PaymentReminderSweep,
    Sweep,
)
from rental_services.notifications import NotificationDispatcher, NullDispatcher, deliver

logger = get_logger("batch.scheduler")


@dataclass
class ScheduledSweep:
    """A sweep plus its interval and next due time."""

    sweep: Sweep
    interval_seconds: int
    next_run_at: datetime | None = None


class SweepScheduler:
    """In-process polling scheduler for sweeps.

    Contract:
        - ``tick()`` runs every due sweep once; returns how many ran.
        - ``run_now(name)`` runs one sweep immediately (CLI, tests).
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a distributed scheduler.  Multi-instance safety comes from
          the optional advisory lock, not from leader election.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        sweeps: Iterable[ScheduledSweep],
        notifier: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        use_advisory_locks: bool = True,
        tick_interval_seconds: float = 1.0,
    ):
        self._session_factory = session_factory
        self._sweeps: dict[str, ScheduledSweep] = {}
        for scheduled in sweeps:
            if scheduled.sweep.name in self._sweeps:
                raise ValueError(f"Duplicate sweep name: {scheduled.sweep.name}")
            if scheduled.interval_seconds < 1:
                raise ValueError(
                    f"interval_seconds must be >= 1 for {scheduled.sweep.name}"
                )
            self._sweeps[scheduled.sweep.name] = scheduled
        self._notifier = notifier or NullDispatcher()
        self._clock = clock or SystemClock()
        self._use_advisory_locks = use_advisory_locks
        self._tick_interval = tick_interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @classmethod
    def from_settings(
        cls,
        settings: KernelSettings,
        session_factory: Callable[[], Session],
        notifier: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        tick_interval_seconds: float = 1.0,
    ) -> SweepScheduler:
        """Scheduler with the five standard sweeps at their configured intervals."""
        return cls(
            session_factory,
            [
                ScheduledSweep(OverdueSweep(), settings.overdue_interval_seconds),
                ScheduledSweep(
                    PaymentReminderSweep(settings.reminder_lead_days),
                    settings.reminder_interval_seconds,
                ),
                ScheduledSweep(MissingInvoiceBackfill(), settings.backfill_interval_seconds),
                ScheduledSweep(
                    AutoArchiveSweep(settings.conversation_inactive_days),
                    settings.auto_archive_interval_seconds,
                ),
                ScheduledSweep(
                    ArchiveRetentionCleanup(settings.archive_retention_days),
                    settings.cleanup_interval_seconds,
                ),
            ],
            notifier=notifier,
            clock=clock,
            use_advisory_locks=settings.use_advisory_locks,
            tick_interval_seconds=tick_interval_seconds,
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def sweep_names(self) -> tuple[str, ...]:
        return tuple(self._sweeps)

    def run_now(self, name: str) -> SweepResult:
        """Run one sweep immediately; errors propagate to the caller."""
        try:
            scheduled = self._sweeps[name]
        except KeyError:
            raise ValueError(
                f"Unknown sweep {name!r}; expected one of {', '.join(self._sweeps)}"
            ) from None
        return self._run_sweep(scheduled.sweep)

    def tick(self) -> int:
        """Run every due sweep (public for testing).

        Returns the number of sweeps that were run.
        """
        now = self._clock.now()
        ran = 0
        for scheduled in self._sweeps.values():
            if self._stop_event.is_set():
                break
            if scheduled.next_run_at is not None and now < scheduled.next_run_at:
                continue

            scheduled.next_run_at = now + timedelta(seconds=scheduled.interval_seconds)
            try:
                self._run_sweep(scheduled.sweep)
                ran += 1
            except Exception:
                logger.exception(
                    "sweep_failed",
                    extra={"sweep_name": scheduled.sweep.name},
                )
        return ran

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="sweep-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={"tick_interval": self._tick_interval, "sweeps": list(self._sweeps)},
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the scheduler to finish.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until ``stop()`` is called; True if stopped."""
        return self._stop_event.wait(timeout=timeout)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Background polling loop. Exits when stop_event is set."""
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)

    def _run_sweep(self, sweep: Sweep) -> SweepResult:
        as_of = self._clock.today()
        with LogContext.bind(correlation_id=str(uuid4()), sweep=sweep.name):
            with session_scope(self._session_factory) as session:
                lock = lock_for(session, self._use_advisory_locks)
                if lock.acquire(session, sweep.name):
                    result = sweep.run(session, as_of)
                else:
                    result = SweepResult(sweep=sweep.name, as_of=as_of, skipped=True)

            delivered = sum(
                deliver(self._notifier, n.kind, n.recipient_id, n.payload)
                for n in result.outbox
            )
            result = replace(result, notifications=delivered)

            logger.info(
                "sweep_completed",
                extra={
                    "sweep_name": sweep.name,
                    "as_of": as_of.isoformat(),
                    "affected": result.affected,
                    "skipped": result.skipped,
                    "notifications": delivered,
                },
            )
        return result
