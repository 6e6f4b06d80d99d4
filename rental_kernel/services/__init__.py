"""Kernel services: write-side operations that flush within the caller's transaction."""

from rental_kernel.services.archive_service import ArchiveService
from rental_kernel.services.balance_service import BalanceService
from rental_kernel.services.contract_service import ContractService
from rental_kernel.services.invoice_service import InvoiceService
from rental_kernel.services.payment_service import PaymentService
from rental_kernel.services.tenant_service import TenantService
from rental_kernel.services.unit_service import UnitService

__all__ = [
    "ArchiveService",
    "BalanceService",
    "ContractService",
    "InvoiceService",
    "PaymentService",
    "TenantService",
    "UnitService",
]
