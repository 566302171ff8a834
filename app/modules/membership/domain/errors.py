"""Errors for the membership module."""

from typing import Any, List, Optional

from infrastructure.operations import CREATION_INCOMPLETE, OperationResult, OperationStatus


class MembershipError(Exception):
    """Base class for membership engine errors."""


class DirectoryError(MembershipError):
    """Raised when a directory backend reports a failure.

    Attributes:
        message: human-friendly message
        response: the failing OperationResult, when there is one
    """

    def __init__(self, message: str, response: Any = None):
        super().__init__(message)
        self.message = message
        self.response = response


BackendError = DirectoryError


class NotFoundError(DirectoryError):
    """The addressed member does not exist."""


class AlreadyExistsError(DirectoryError):
    """A member with the same primary email already exists."""


class CreationIncompleteError(DirectoryError):
    """The backend has not finished creating the member; retry later."""


class DeliveryError(MembershipError):
    """Raised when a lifecycle email could not be sent."""

    def __init__(self, message: str, response: Any = None):
        super().__init__(message)
        self.message = message
        self.response = response


class ValidationError(MembershipError):
    """Raised for malformed records.

    Attributes:
        errors: one message per failed check
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors) if errors else [message]


class AggregateError(MembershipError):
    """Raised once at the end of a batch in which some items failed.

    Attributes:
        errors: message text of every per-item failure, in visit order
    """

    def __init__(self, message: str, errors: List[str]):
        super().__init__(message)
        self.message = message
        self.errors = list(errors)


def raise_for_result(result: OperationResult, operation: str) -> OperationResult:
    """Raise the exception matching a failed directory result.

    Ok results (SUCCESS, ALREADY_SATISFIED) are returned unchanged so the call
    can be chained.

    Raises:
        NotFoundError, AlreadyExistsError, CreationIncompleteError, or
        DirectoryError for any other failure
    """
    if result.is_ok:
        return result

    message = f"{operation}: {result.message}"
    if result.status == OperationStatus.NOT_FOUND:
        raise NotFoundError(message, response=result)
    if result.status == OperationStatus.ALREADY_EXISTS:
        raise AlreadyExistsError(message, response=result)
    if result.error_code == CREATION_INCOMPLETE:
        raise CreationIncompleteError(message, response=result)
    raise DirectoryError(message, response=result)
