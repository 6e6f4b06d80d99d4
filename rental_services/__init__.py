"""
rental_services -- Package init and public API.

Responsibility:
    The LeaseEngine facade plus the collaborator seams it consumes
    (permission checking and notification dispatch).

Architecture position:
    Services -- orchestration over the kernel.
        rental_services/ -> rental_kernel/   (allowed)
        rental_kernel/   -> rental_services/ (FORBIDDEN)
"""

from rental_services.lease_engine import LeaseEngine, as_uuid
from rental_services.notifications import (
    LoggingDispatcher,
    Notification,
    NotificationDispatcher,
    NullDispatcher,
    RecordingDispatcher,
)
from rental_services.permissions import AllowAll, GrantTable, PermissionChecker

__all__ = [
    "AllowAll",
    "GrantTable",
    "LeaseEngine",
    "LoggingDispatcher",
    "Notification",
    "NotificationDispatcher",
    "NullDispatcher",
    "PermissionChecker",
    "RecordingDispatcher",
    "as_uuid",
]
