"""
Tests for the monthly invoice schedule.

Pure functions only; no database.
"""

from datetime import date
from decimal import Decimal

from rental_kernel.domain.billing import (
    Installment,
    build_schedule,
    first_of_next_month,
    monthly_due_dates,
)


class TestMonthlyDueDates:
    def test_partial_last_month_is_capped_at_end_date(self):
        assert monthly_due_dates(date(2024, 1, 1), date(2024, 3, 15)) == (
            date(2024, 2, 1),
            date(2024, 3, 1),
            date(2024, 3, 15),
        )

    def test_end_on_first_of_month_has_no_extra_installment(self):
        assert monthly_due_dates(date(2024, 1, 1), date(2024, 4, 1)) == (
            date(2024, 2, 1),
            date(2024, 3, 1),
            date(2024, 4, 1),
        )

    def test_mid_month_start_walks_from_first_of_start_month(self):
        assert monthly_due_dates(date(2024, 1, 20), date(2024, 3, 1)) == (
            date(2024, 2, 1),
            date(2024, 3, 1),
        )

    def test_year_rollover(self):
        assert monthly_due_dates(date(2024, 11, 1), date(2025, 2, 1)) == (
            date(2024, 12, 1),
            date(2025, 1, 1),
            date(2025, 2, 1),
        )

    def test_single_short_month(self):
        assert monthly_due_dates(date(2024, 5, 1), date(2024, 5, 20)) == (
            date(2024, 5, 20),
        )

    def test_no_dates_when_end_precedes_month_start(self):
        assert monthly_due_dates(date(2024, 5, 10), date(2024, 4, 30)) == ()


class TestFirstOfNextMonth:
    def test_december(self):
        assert first_of_next_month(date(2023, 12, 31)) == date(2024, 1, 1)

    def test_leap_february(self):
        assert first_of_next_month(date(2024, 2, 29)) == date(2024, 3, 1)


class TestBuildSchedule:
    def test_every_installment_carries_full_monthly_amount(self):
        schedule = build_schedule(
            date(2024, 1, 1), date(2024, 3, 15), Decimal("1000000")
        )
        assert schedule == (
            Installment(date(2024, 2, 1), Decimal("1000000")),
            Installment(date(2024, 3, 1), Decimal("1000000")),
            Installment(date(2024, 3, 15), Decimal("1000000")),
        )

    def test_existing_due_dates_are_skipped(self):
        schedule = build_schedule(
            date(2024, 1, 1),
            date(2024, 3, 15),
            Decimal("500"),
            frozenset({date(2024, 2, 1), date(2024, 3, 15)}),
        )
        assert [i.due_date for i in schedule] == [date(2024, 3, 1)]

    def test_fully_invoiced_contract_yields_nothing(self):
        dates = frozenset(monthly_due_dates(date(2024, 1, 1), date(2024, 3, 15)))
        assert build_schedule(date(2024, 1, 1), date(2024, 3, 15), Decimal("1"), dates) == ()
