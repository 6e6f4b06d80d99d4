"""
Billing -- monthly invoice schedule for a lease.

Responsibility:
    Pure computation of the invoice due dates (and amounts) a contract
    produces.  Persistence and de-duplication against existing invoices live
    in ``InvoiceService.generate_for_contract``.

Rules:
    - Walk calendar months from the first day of the start month up to, but
      not including, the end date.
    - Each month is billed on the first day of the following month, capped
      at the contract end date.
    - Every installment carries the full monthly amount; a final partial
      month is not pro-rated.

Example:
    2024-01-01 .. 2024-03-15 -> due 2024-02-01, 2024-03-01, 2024-03-15
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


@dataclass(frozen=True)
class Installment:
    """One scheduled invoice."""

    due_date: date
    amount: Decimal


def first_of_month(day: date) -> date:
    return day.replace(day=1)


def first_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def monthly_due_dates(start_date: date, end_date: date) -> tuple[date, ...]:
    """
    Due dates for a contract spanning ``start_date`` .. ``end_date``.

    Returns an empty tuple when ``end_date`` is not after the first day of
    the start month.
    """
    due_dates: list[date] = []
    cursor = first_of_month(start_date)
    while cursor < end_date:
        due = min(first_of_next_month(cursor), end_date)
        due_dates.append(due)
        cursor = first_of_next_month(cursor)
    return tuple(due_dates)


def build_schedule(
    start_date: date,
    end_date: date,
    monthly_amount: Decimal,
    existing_due_dates: frozenset[date] = frozenset(),
) -> tuple[Installment, ...]:
    """
    Installments still to be created for a contract.

    Dates already present in ``existing_due_dates`` are skipped, so calling
    this repeatedly with the persisted dates converges on the same set.
    """
    return tuple(
        Installment(due_date=due, amount=monthly_amount)
        for due in monthly_due_dates(start_date, end_date)
        if due not in existing_due_dates
    )
