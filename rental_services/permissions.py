"""
rental_services.permissions -- authorization seam for the engine facade.

Responsibility:
    Names the permission each facade operation requires and defines the
    ``PermissionChecker`` protocol the facade consults before touching
    storage.  Identity resolution and role storage live outside the kernel;
    callers inject a checker.

Invariants:
    - Permission names are stable strings ("contract.create", ...).
    - A checker answers yes/no only; the facade raises PermissionDeniedError.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Protocol, runtime_checkable

UNIT_CREATE = "unit.create"
UNIT_READ = "unit.read"
TENANT_CREATE = "tenant.create"
TENANT_READ = "tenant.read"
CONTRACT_CREATE = "contract.create"
CONTRACT_READ = "contract.read"
CONTRACT_TRANSITION = "contract.transition"
INVOICE_CREATE = "invoice.create"
INVOICE_READ = "invoice.read"
PAYMENT_CREATE = "payment.create"
PAYMENT_READ = "payment.read"
PAYMENT_CONFIRM = "payment.confirm"
PAYMENT_CANCEL = "payment.cancel"
BALANCE_READ = "balance.read"
BALANCE_RESET = "balance.reset"
ARCHIVE = "archive.archive"
UNARCHIVE = "archive.unarchive"
REMOVE = "archive.remove"
ARCHIVE_READ = "archive.read"

ALL_PERMISSIONS: frozenset[str] = frozenset(
    {
        UNIT_CREATE,
        UNIT_READ,
        TENANT_CREATE,
        TENANT_READ,
        CONTRACT_CREATE,
        CONTRACT_READ,
        CONTRACT_TRANSITION,
        INVOICE_CREATE,
        INVOICE_READ,
        PAYMENT_CREATE,
        PAYMENT_READ,
        PAYMENT_CONFIRM,
        PAYMENT_CANCEL,
        BALANCE_READ,
        BALANCE_RESET,
        ARCHIVE,
        UNARCHIVE,
        REMOVE,
        ARCHIVE_READ,
    }
)


@runtime_checkable
class PermissionChecker(Protocol):
    def __call__(self, actor_id: str, permission: str) -> bool: ...


class AllowAll:
    """Grants everything.  For trusted callers (sweeps, CLI, tests)."""

    def __call__(self, actor_id: str, permission: str) -> bool:
        return True


class GrantTable:
    """
    Static actor -> permissions table.

    ``"*"`` in an actor's grants allows every permission.
    """

    def __init__(self, grants: Mapping[str, Iterable[str]]):
        self._grants: dict[str, frozenset[str]] = {
            str(actor): frozenset(perms) for actor, perms in grants.items()
        }

    def __call__(self, actor_id: str, permission: str) -> bool:
        granted = self._grants.get(str(actor_id), frozenset())
        return "*" in granted or permission in granted
