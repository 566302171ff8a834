"""Operation status enumeration.

Status codes shared by every client and adapter so that callers can tell
expected outcomes (already a member, already absent) apart from failures.
"""

from enum import Enum


class OperationStatus(Enum):
    """Status codes for operation results.

    Attributes:
        SUCCESS: Operation completed and changed state as requested
        ALREADY_SATISFIED: Desired end state was already in place (no change)
        ALREADY_EXISTS: Create-style operation collided with an existing record
        TRANSIENT_ERROR: Retryable error (network, rate limit, consistency window)
        PERMANENT_ERROR: Non-retryable error (validation, unknown backend failure)
        UNAUTHORIZED: Authentication or authorization failure
        NOT_FOUND: Resource not found
    """

    SUCCESS = "success"
    ALREADY_SATISFIED = "already_satisfied"
    ALREADY_EXISTS = "already_exists"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
