"""
Typed Exception Hierarchy for the Rental Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP layer, bot handlers, background sweeps) must react to failures
by type, not by parsing messages:

    try:
        engine.change_contract_status(actor, contract_id, ContractStatus.ACTIVE)
    except InvalidTransitionError as e:
        respond(409, code=e.code, allowed=[s.value for s in e.allowed])

Every exception:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RentalKernelError (base)
    |
    +-- NotFoundError
    |   +-- UnitNotFoundError
    |   +-- TenantNotFoundError
    |   +-- ContractNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- PaymentNotFoundError
    |
    +-- InvalidTransitionError
    |
    +-- UnitUnavailableError
    |
    +-- ConflictError
    |   +-- AlreadyArchivedError
    |   +-- NotArchivedError
    |   +-- HasConfirmedPaymentsError
    |   +-- DuplicateInvoiceError
    |
    +-- PaymentCancelledError
    |
    +-- PermissionDeniedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                     | When Raised
--------------|--------------------------|------------------------------------------
Not found     | UNIT_NOT_FOUND           | Unit ID doesn't exist
              | TENANT_NOT_FOUND         | Tenant ID doesn't exist
              | CONTRACT_NOT_FOUND       | Contract ID doesn't exist
              | INVOICE_NOT_FOUND        | Invoice ID doesn't exist
              | PAYMENT_NOT_FOUND        | Payment ID doesn't exist
--------------|--------------------------|------------------------------------------
State machine | INVALID_STATUS_TRANSITION| Status change not on a table edge
              | UNIT_ALREADY_BUSY        | Contract created on a BUSY unit
              | PAYMENT_CANCELLED        | Confirming a cancelled payment
--------------|--------------------------|------------------------------------------
Conflict      | ALREADY_ARCHIVED         | Archiving an archived row
              | NOT_ARCHIVED             | Deleting/unarchiving a live row
              | HAS_CONFIRMED_PAYMENTS   | Deleting money-bearing rows
              | DUPLICATE_INVOICE        | Second invoice for a contract due date
--------------|--------------------------|------------------------------------------
Access        | PERMISSION_DENIED        | Authorization layer refused the call

===============================================================================
HANDLING PATTERNS
===============================================================================

1. NOTHING HERE IS RETRIED INTERNALLY. Every kernel operation runs in one
   transaction, so a caller may safely retry the whole call after a
   transient storage failure.

2. IDEMPOTENT SUCCESS IS NOT AN ERROR. Confirming a CONFIRMED payment
   returns the payment unchanged; no exception is raised.

3. CONFLICTS ARE NOT AUTO-RESOLVED. ConflictError subclasses signal that a
   human must act first (archive before delete, keep money-bearing rows).
"""


class RentalKernelError(Exception):
    """
    Base exception for all rental kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "RENTAL_KERNEL_ERROR"


# Lookup failures


class NotFoundError(RentalKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"
    entity: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity.capitalize()} not found: {entity_id}")


class UnitNotFoundError(NotFoundError):
    code: str = "UNIT_NOT_FOUND"
    entity: str = "unit"


class TenantNotFoundError(NotFoundError):
    code: str = "TENANT_NOT_FOUND"
    entity: str = "tenant"


class ContractNotFoundError(NotFoundError):
    code: str = "CONTRACT_NOT_FOUND"
    entity: str = "contract"


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"
    entity: str = "invoice"


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"
    entity: str = "payment"


# State machine


class InvalidTransitionError(RentalKernelError):
    """Requested status is not reachable from the current status."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(
        self,
        entity: str,
        entity_id: str,
        current_status: str,
        requested_status: str,
        allowed: tuple = (),
    ):
        self.entity = entity
        self.entity_id = entity_id
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed = tuple(allowed)
        allowed_str = ", ".join(str(getattr(a, "value", a)) for a in self.allowed) or "none"
        super().__init__(
            f"Cannot transition {entity} {entity_id} from {current_status} "
            f"to {requested_status} (allowed: {allowed_str})"
        )


class UnitUnavailableError(RentalKernelError):
    """Contract creation targeted a unit that is already occupied."""

    code: str = "UNIT_ALREADY_BUSY"

    def __init__(self, unit_id: str, unit_name: str | None = None):
        self.unit_id = unit_id
        self.unit_name = unit_name
        super().__init__(
            f"Unit {unit_name or unit_id} is already occupied by another contract"
        )


class PaymentCancelledError(RentalKernelError):
    """A cancelled payment can never be confirmed."""

    code: str = "PAYMENT_CANCELLED"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} is cancelled and cannot be confirmed")


# Conflicts


class ConflictError(RentalKernelError):
    """Base exception for requests that conflict with current row state."""

    code: str = "CONFLICT"


class AlreadyArchivedError(ConflictError):
    code: str = "ALREADY_ARCHIVED"

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} {entity_id} is already archived")


class NotArchivedError(ConflictError):
    """Row must be archived before it can be removed or restored."""

    code: str = "NOT_ARCHIVED"

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} {entity_id} is not archived")


class HasConfirmedPaymentsError(ConflictError):
    """Hard delete refused: confirmed money is attached to the sub-tree."""

    code: str = "HAS_CONFIRMED_PAYMENTS"

    def __init__(self, entity: str, entity_id: str, confirmed_count: int):
        self.entity = entity
        self.entity_id = entity_id
        self.confirmed_count = confirmed_count
        super().__init__(
            f"Cannot delete {entity} {entity_id}: "
            f"{confirmed_count} confirmed payment(s) exist"
        )


class DuplicateInvoiceError(ConflictError):
    code: str = "DUPLICATE_INVOICE"

    def __init__(self, contract_id: str, due_date: str):
        self.contract_id = contract_id
        self.due_date = due_date
        super().__init__(
            f"Contract {contract_id} already has an invoice due {due_date}"
        )


# Access


class PermissionDeniedError(RentalKernelError):
    code: str = "PERMISSION_DENIED"

    def __init__(self, actor_id: str, permission: str):
        self.actor_id = actor_id
        self.permission = permission
        super().__init__(f"Actor {actor_id} lacks permission '{permission}'")
