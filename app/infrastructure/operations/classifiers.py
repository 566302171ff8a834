"""Error classifiers for provider exceptions and messages.

Converts provider-specific failures into standardized OperationResult
objects so adapters never leak backend exception types to the domain.

Key Functions:
- classify_http_error(): Google API HTTP errors -> OperationResult
- classify_aws_error(): botocore ClientError -> OperationResult
- classify_directory_error(): directory/group backend messages -> OperationResult

Usage:
    from infrastructure.operations.classifiers import classify_directory_error

    result = directory_client.create_user(body)
    if not result.is_success:
        result = classify_directory_error(result)
"""

from typing import Optional, Union

from botocore.exceptions import ClientError  # type: ignore
from googleapiclient.errors import HttpError

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

# Substrings the Admin SDK puts in error payloads, matched case-insensitively.
ALREADY_EXISTS_MARKERS = ("already exists",)
NOT_FOUND_MARKERS = ("resource not found", "userkey")
CREATION_INCOMPLETE_MARKERS = ("creation is not complete",)

CREATION_INCOMPLETE = "CREATION_INCOMPLETE"

AWS_THROTTLING_CODES = ("Throttling", "ThrottlingException", "RequestLimitExceeded")
AWS_NOT_FOUND_CODES = ("ResourceNotFoundException",)
AWS_UNAUTHORIZED_CODES = ("AccessDeniedException", "UnauthorizedOperation")


def classify_http_error(exc: Exception) -> OperationResult:
    """Classify Google API HTTP errors into OperationResult.

    Status Code Mapping:
    - 429: Rate limiting -> TRANSIENT_ERROR with retry_after
    - 401/403: -> PERMANENT_ERROR
    - 404: -> NOT_FOUND
    - 5xx: -> TRANSIENT_ERROR
    - Other: -> PERMANENT_ERROR

    The original exception text is kept in the message because the directory
    classifier matches on it.

    Args:
        exc: Exception raised by Google API client (googleapiclient)

    Returns:
        OperationResult with appropriate status, message and error_code
    """
    if not isinstance(exc, HttpError):
        return OperationResult.transient_error(
            f"Connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    status_code: Optional[int] = None
    if hasattr(exc, "resp") and exc.resp:
        status_code = exc.resp.status

    if status_code == 429:
        retry_after = 60
        if hasattr(exc, "resp") and hasattr(exc.resp, "get"):
            header_value = exc.resp.get("retry-after")
            if header_value:
                try:
                    retry_after = int(header_value)
                except (ValueError, TypeError):
                    pass

        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            f"Google API rate limited: {str(exc)}",
            error_code="RATE_LIMITED",
            retry_after=retry_after,
        )

    if status_code in (401, 403):
        return OperationResult.permanent_error(
            f"Google API authorization failed ({status_code}): {str(exc)}",
            error_code="UNAUTHORIZED" if status_code == 401 else "FORBIDDEN",
        )

    if status_code == 404:
        return OperationResult.error(
            OperationStatus.NOT_FOUND,
            f"Google resource not found: {str(exc)}",
            error_code="NOT_FOUND",
        )

    if status_code and 500 <= status_code < 600:
        return OperationResult.transient_error(
            f"Google API server error ({status_code}): {str(exc)}",
            error_code="SERVER_ERROR",
        )

    return OperationResult.permanent_error(
        f"Google API error ({status_code}): {str(exc)}",
        error_code=f"GOOGLE_API_ERROR_{status_code}" if status_code else "HTTP_ERROR",
    )


def _contains_any(message: str, markers: tuple) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in markers)


def classify_directory_error(
    failure: Union[OperationResult, Exception, str],
) -> OperationResult:
    """Classify a directory backend failure by the text it carries.

    Mapping (first match wins):
    - "creation is not complete" -> TRANSIENT_ERROR, code CREATION_INCOMPLETE
    - "already exists" -> ALREADY_EXISTS
    - "resource not found" / "userKey" -> NOT_FOUND
    - anything else -> PERMANENT_ERROR wrapping the original message

    Args:
        failure: A failed OperationResult, an exception, or a raw message

    Returns:
        OperationResult with the classified status; successful results are
        returned unchanged
    """
    if isinstance(failure, OperationResult):
        if failure.is_ok:
            return failure
        message = failure.message
    else:
        message = str(failure)

    if _contains_any(message, CREATION_INCOMPLETE_MARKERS):
        return OperationResult.transient_error(message, error_code=CREATION_INCOMPLETE)
    if _contains_any(message, ALREADY_EXISTS_MARKERS):
        return OperationResult.error(
            OperationStatus.ALREADY_EXISTS, message, error_code="ALREADY_EXISTS"
        )
    if _contains_any(message, NOT_FOUND_MARKERS):
        return OperationResult.not_found(message)
    if isinstance(failure, OperationResult) and failure.status in (
        OperationStatus.NOT_FOUND,
        OperationStatus.UNAUTHORIZED,
    ):
        return failure
    return OperationResult.permanent_error(message, error_code="DIRECTORY_ERROR")


def classify_aws_error(exc: ClientError) -> OperationResult:
    """Classify a botocore ClientError into OperationResult.

    Error Code Mapping:
    - Throttling codes -> TRANSIENT_ERROR
    - ResourceNotFoundException -> NOT_FOUND
    - AccessDenied codes -> UNAUTHORIZED
    - Other -> PERMANENT_ERROR
    """
    error = exc.response.get("Error", {})
    error_code = error.get("Code")
    error_message = error.get("Message", str(exc))

    if error_code in AWS_THROTTLING_CODES:
        return OperationResult.transient_error(
            message=error_message, error_code=error_code
        )
    if error_code in AWS_NOT_FOUND_CODES:
        return OperationResult.not_found(error_message, error_code=error_code)
    if error_code in AWS_UNAUTHORIZED_CODES:
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED, message=error_message, error_code=error_code
        )
    return OperationResult.permanent_error(message=error_message, error_code=error_code)
