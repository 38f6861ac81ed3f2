"""
Typed Exception Hierarchy for the Vacation Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The presentation shell has to turn every failure into an actionable message
("pick a later start date", "this request already moved on", "someone else
approved it first, reload"). Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        engine.act(request_id, actor, "approve")
    except Exception as e:
        if "not your turn" in str(e):  # FRAGILE - message might change
            ...

Example - RIGHT way (what this module enables):
    try:
        engine.act(request_id, actor, "approve")
    except PermissionDeniedError as e:
        notify(f"Waiting for {e.stage_owner} review")
    except ConcurrentModificationError:
        reload_and_retry()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from VacationKernelError:

    VacationKernelError (base)
    |
    +-- ValidationError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |       +-- PermissionDeniedError
    |       +-- AlreadyFinalizedError
    |
    +-- NotFoundError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- StorageError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- AuditError
        +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Malformed submission, missing deny comment
----------------|-----------------------------|-----------------------------------------
Workflow        | INVALID_TRANSITION          | Policy rejected (status, role, action)
                | PERMISSION_DENIED           | Not this role's turn at the current stage
                | ALREADY_FINALIZED           | Request is approved or denied
----------------|-----------------------------|-----------------------------------------
Lookup          | NOT_FOUND                   | Unknown request id
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENT_MODIFICATION     | Version token mismatch on conditional write
----------------|-----------------------------|-----------------------------------------
Storage         | STORAGE_ERROR               | Database unavailable / driver failure
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Rewriting a recorded approval slot
----------------|-----------------------------|-----------------------------------------
Audit           | AUDIT_CHAIN_BROKEN          | Hash chain validation failed

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Nothing is retried inside the kernel. ConcurrentModificationError means
   "re-fetch and re-apply"; StorageError means "back off and try again".
   Both decisions belong to the caller.

2. InvalidTransitionError is the policy's single rejection; catch it to
   handle both PermissionDeniedError and AlreadyFinalizedError at once.

3. Every error is raised before any write happens, except the two
   store-level errors, which are raised after the transaction was rolled
   back. No operation partially applies.

===============================================================================
"""


class VacationKernelError(Exception):
    """
    Base exception for all vacation kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "VACATION_KERNEL_ERROR"


# Validation


class ValidationError(VacationKernelError):
    """A submission or action argument is malformed or incomplete."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Workflow


class WorkflowError(VacationKernelError):
    """Base exception for approval workflow errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """The approval policy rejected (status, actor_role, action)."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, status: str, actor_role: str, action: str, reason: str = ""):
        self.status = status
        self.actor_role = actor_role
        self.action = action
        self.reason = reason
        message = f"Cannot {action} a {status} request as {actor_role}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class PermissionDeniedError(InvalidTransitionError):
    """The actor's role is not the one whose turn it is."""

    code: str = "PERMISSION_DENIED"

    def __init__(
        self,
        status: str,
        actor_role: str,
        action: str,
        stage_owner: str | None = None,
    ):
        self.stage_owner = stage_owner
        reason = (
            f"waiting for {stage_owner}" if stage_owner else "role may not act on vacation requests"
        )
        super().__init__(status, actor_role, action, reason)


class AlreadyFinalizedError(InvalidTransitionError):
    """The request is in a terminal state and accepts no transitions."""

    code: str = "ALREADY_FINALIZED"

    def __init__(self, request_id: str, status: str, actor_role: str, action: str):
        self.request_id = request_id
        super().__init__(status, actor_role, action, f"request {request_id} is final")


# Lookup


class NotFoundError(VacationKernelError):
    """Entity with given ID was not found."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# Concurrency


class ConcurrencyError(VacationKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """Conditional write lost against a concurrent transition."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, request_id: str, expected_version: int):
        self.request_id = request_id
        self.expected_version = expected_version
        super().__init__(
            f"Vacation request {request_id} was modified concurrently "
            f"(expected version {expected_version})"
        )


# Storage


class StorageError(VacationKernelError):
    """The persistence collaborator failed or is unavailable."""

    code: str = "STORAGE_ERROR"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Storage failure during {operation}: {reason}")


# Immutability


class ImmutabilityError(VacationKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Recorded approval slots and audit events are write-once.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Audit


class AuditError(VacationKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_event_id}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
