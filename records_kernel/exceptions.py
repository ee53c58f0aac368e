"""
Typed Exception Hierarchy for the Records Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The front desk has to tell a clerk exactly what went wrong: a missing field,
a record someone else already deleted, or a store failure worth retrying.
Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        lifecycle.reject(record_id, remarks, actor)
    except Exception as e:
        if "not found" in str(e):  # FRAGILE - message might change
            show_stale_banner()

Example - RIGHT way (what this module enables):
    try:
        lifecycle.reject(record_id, remarks, actor)
    except RecordNotFoundError as e:
        show_stale_banner(e.record_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from RecordsKernelError:

    RecordsKernelError (base)
    |
    +-- ValidationError
    |   +-- MissingFieldError
    |
    +-- RecordError
    |   +-- RecordNotFoundError
    |   +-- RecordClosedError
    |   +-- UnknownRecordTypeError
    |
    +-- StoreError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- DesignationError
    |   +-- DesignationExistsError
    |   +-- DesignationNotFoundError
    |
    +-- AuthError
        +-- InvalidCredentialsError
        +-- DuplicateUsernameError
        +-- UserNotFoundError
        +-- SessionExpiredError
        +-- PermissionDeniedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Required value missing or malformed
                | MISSING_FIELD               | Required record field empty
----------------|-----------------------------|-----------------------------------------
Record          | RECORD_NOT_FOUND            | Record id absent from the store
                | RECORD_CLOSED               | Action not allowed in current status
                | UNKNOWN_RECORD_TYPE         | Collection / type name not configured
----------------|-----------------------------|-----------------------------------------
Store           | STORE_ERROR                 | Underlying database operation failed
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Record changed since it was read
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | History row or frozen field modified
----------------|-----------------------------|-----------------------------------------
Designation     | DESIGNATION_EXISTS          | Duplicate designation name
                | DESIGNATION_NOT_FOUND       | Designation name unknown
----------------|-----------------------------|-----------------------------------------
Auth            | INVALID_CREDENTIALS         | Username/password mismatch
                | DUPLICATE_USERNAME          | Username already taken
                | USER_NOT_FOUND              | User id unknown
                | SESSION_EXPIRED             | Token unknown, revoked or expired
                | PERMISSION_DENIED           | Actor lacks the required role

===============================================================================
HANDLING PATTERNS
===============================================================================

1. VALIDATION BEFORE MUTATION: ValidationError is always raised before the
   store is touched, so catching it never requires a rollback.

2. NOT FOUND IS NOT FATAL: RecordNotFoundError means the local view is stale.
   Refresh the list and let the clerk retry.

3. STORE ERRORS: StoreError chains the original driver exception
   (``__cause__``).  The operation was not applied.
"""


class RecordsKernelError(Exception):
    """
    Base exception for all records kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "RECORDS_KERNEL_ERROR"


# Validation exceptions


class ValidationError(RecordsKernelError):
    """A required value is missing or malformed. Raised before any write."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field_name: str | None = None):
        self.field_name = field_name
        super().__init__(message)


class MissingFieldError(ValidationError):
    """One or more required record fields are empty."""

    code: str = "MISSING_FIELD"

    def __init__(self, record_type: str, field_names: tuple[str, ...]):
        self.record_type = record_type
        self.field_names = field_names
        super().__init__(
            f"Please fill in all required fields for {record_type}: "
            f"{', '.join(field_names)}",
            field_name=field_names[0] if field_names else None,
        )


# Record exceptions


class RecordError(RecordsKernelError):
    """Base exception for record-related errors."""

    code: str = "RECORD_ERROR"


class RecordNotFoundError(RecordError):
    """Record with given ID was not found in the store."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, record_id: str, record_type: str | None = None):
        self.record_id = record_id
        self.record_type = record_type
        label = f"{record_type} record" if record_type else "Record"
        super().__init__(
            f"{label} not found: {record_id}. "
            "It may have been deleted or the data is out of sync."
        )


class RecordClosedError(RecordError):
    """The requested action is not available in the record's current status."""

    code: str = "RECORD_CLOSED"

    def __init__(self, record_id: str, status: str, action: str):
        self.record_id = record_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} record {record_id}: record is {status}"
        )


class UnknownRecordTypeError(RecordError):
    """Record type or collection name is not configured."""

    code: str = "UNKNOWN_RECORD_TYPE"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown record type or collection: {name}")


# Store exceptions


class StoreError(RecordsKernelError):
    """
    The underlying store operation failed (connection, permission, constraint).

    The original driver exception is chained as ``__cause__``.
    """

    code: str = "STORE_ERROR"

    def __init__(self, operation: str, collection: str, detail: str):
        self.operation = operation
        self.collection = collection
        self.detail = detail
        super().__init__(
            f"Store operation {operation} on {collection} failed: {detail}"
        )


# Concurrency exceptions


class ConcurrencyError(RecordsKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str,
                 expected_version: int | None = None,
                 actual_version: int | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another session"
        )


# Immutability exceptions


class ImmutabilityError(RecordsKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record or field.

    Remarks history rows are append-only; tracking IDs, record types and a
    stamped time-out are frozen.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Designation exceptions


class DesignationError(RecordsKernelError):
    """Base exception for designation list errors."""

    code: str = "DESIGNATION_ERROR"


class DesignationExistsError(DesignationError):
    """Designation name already present."""

    code: str = "DESIGNATION_EXISTS"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Designation already exists: {name}")


class DesignationNotFoundError(DesignationError):
    """Designation name not present."""

    code: str = "DESIGNATION_NOT_FOUND"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Designation not found: {name}")


# Auth exceptions


class AuthError(RecordsKernelError):
    """Base exception for authentication and authorization errors."""

    code: str = "AUTH_ERROR"


class InvalidCredentialsError(AuthError):
    """Username/password pair did not match."""

    code: str = "INVALID_CREDENTIALS"

    def __init__(self, username: str):
        self.username = username
        super().__init__("Invalid username or password")


class DuplicateUsernameError(AuthError):
    """Username already registered."""

    code: str = "DUPLICATE_USERNAME"

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Username already exists: {username}")


class UserNotFoundError(AuthError):
    """User with given ID was not found."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class SessionExpiredError(AuthError):
    """Session token is unknown, revoked or past its expiry."""

    code: str = "SESSION_EXPIRED"

    def __init__(self):
        super().__init__("Session expired or invalid; please log in again")


class PermissionDeniedError(AuthError):
    """Actor lacks the role required for the action."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, actor: str, action: str):
        self.actor = actor
        self.action = action
        super().__init__(f"{actor} is not allowed to {action}")
