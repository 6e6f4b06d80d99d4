"""Selectors for the rental kernel (read side)."""

from rental_kernel.selectors.archive_selector import (
    ArchiveSelector,
    ArchiveSummary,
    EntityArchiveCounts,
)
from rental_kernel.selectors.invoice_selector import InvoiceDueRow, InvoiceSelector
from rental_kernel.selectors.payment_selector import PaymentSelector

__all__ = [
    "ArchiveSelector",
    "ArchiveSummary",
    "EntityArchiveCounts",
    "InvoiceDueRow",
    "InvoiceSelector",
    "PaymentSelector",
]
