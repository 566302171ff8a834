"""Low-level Google API execution with retry and error classification."""

import time
from typing import Any, Callable, Optional

import structlog
from googleapiclient.errors import HttpError

from infrastructure.operations.classifiers import classify_http_error
from infrastructure.operations.result import OperationResult

logger = structlog.get_logger()


ERROR_CONFIG: dict[str, Any] = {
    "retry_errors": [429, 500, 502, 503, 504],
    "rate_limit_delay": 60,
    "default_max_retries": 3,
    "default_backoff_factor": 1.0,
}


def _calculate_retry_delay(attempt: int, status_code: int) -> float:
    """Delay before the next attempt (0-indexed) for an HTTP status."""
    if status_code == 429:
        return float(ERROR_CONFIG["rate_limit_delay"])
    return float(ERROR_CONFIG["default_backoff_factor"]) * (2**attempt)


def execute_google_api_call(
    operation_name: str,
    api_callable: Callable[[], Any],
    max_retries: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> OperationResult:
    """Execute a Google API call with retry logic and error classification.

    Rate limits and server errors are retried; any other HttpError is
    classified with ``classify_http_error``, which keeps the backend message
    so directory callers can match on it.

    Args:
        operation_name: Name of operation for logging (e.g., "users.get")
        api_callable: Callable that executes the API call
        max_retries: Maximum retry attempts (uses default if None)
        sleep: Sleep function, injectable for tests

    Returns:
        OperationResult with standardized status, message, data, error_code
    """
    max_attempts = (
        max_retries if max_retries is not None else ERROR_CONFIG["default_max_retries"]
    )
    retry_codes = set(ERROR_CONFIG["retry_errors"])

    for attempt in range(max_attempts + 1):
        try:
            result = api_callable()

            if attempt > 0:
                logger.info(
                    "google_api_retry_success",
                    operation=operation_name,
                    attempt=attempt + 1,
                )

            if isinstance(result, OperationResult):
                return result

            return OperationResult.success(
                data=result,
                message=f"{operation_name} succeeded",
            )

        except HttpError as e:
            status_code = int(e.resp.status)
            if status_code in retry_codes and attempt < max_attempts:
                delay = _calculate_retry_delay(attempt, status_code)
                logger.warning(
                    "google_api_retrying",
                    operation=operation_name,
                    attempt=attempt + 1,
                    status_code=status_code,
                    delay=delay,
                )
                sleep(delay)
                continue

            logger.warning(
                "google_api_error",
                operation=operation_name,
                status_code=status_code,
                error=str(e),
            )
            return classify_http_error(e)

        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "google_api_unexpected_error",
                operation=operation_name,
                error=str(e),
            )
            return OperationResult.permanent_error(
                message=str(e),
                error_code="GOOGLE_API_ERROR",
            )

    return OperationResult.permanent_error(
        message=f"{operation_name} exhausted retries",
        error_code="GOOGLE_API_ERROR",
    )
