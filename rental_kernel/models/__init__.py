"""ORM models for the rental kernel."""

from rental_kernel.models.balance import Balance
from rental_kernel.models.contract import Contract
from rental_kernel.models.conversation import (
    ArchivedConversation,
    ArchivedMessage,
    Conversation,
    Message,
)
from rental_kernel.models.invoice import Invoice
from rental_kernel.models.payment import Payment
from rental_kernel.models.tenant import Tenant
from rental_kernel.models.unit import Unit

__all__ = [
    "ArchivedConversation",
    "ArchivedMessage",
    "Balance",
    "Contract",
    "Conversation",
    "Invoice",
    "Message",
    "Payment",
    "Tenant",
    "Unit",
]
