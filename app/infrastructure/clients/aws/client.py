"""Base AWS client utilities.

Provides ``get_boto3_client`` and ``execute_aws_api_call`` returning
OperationResult. Configuration is passed in; nothing is read from settings
at import time.
"""

import time
from typing import Any, Dict, Optional

import boto3  # type: ignore
from botocore.client import BaseClient  # type: ignore
from botocore.exceptions import BotoCoreError, ClientError  # type: ignore
import structlog

from infrastructure.operations.classifiers import classify_aws_error
from infrastructure.operations.result import OperationResult

logger = structlog.get_logger()


def get_boto3_client(
    service_name: str,
    session_config: Optional[Dict[str, Any]] = None,
    client_config: Optional[Dict[str, Any]] = None,
) -> BaseClient:
    """Create a boto3 client for the given service.

    Args:
        service_name: AWS service name (e.g., 'dynamodb')
        session_config: Optional boto3 session kwargs (e.g., region_name)
        client_config: Optional client kwargs (e.g., endpoint_url)

    Returns:
        botocore client instance
    """
    session = boto3.Session(**(session_config or {}))
    return session.client(service_name, **(client_config or {}))


def _calculate_retry_delay(attempt: int, backoff_factor: float = 0.5) -> float:
    return backoff_factor * (2**attempt)


def execute_aws_api_call(
    service_name: str,
    method: str,
    session_config: Optional[Dict[str, Any]] = None,
    client_config: Optional[Dict[str, Any]] = None,
    max_retries: int = 3,
    backoff_factor: float = 0.5,
    **kwargs,
) -> OperationResult:
    """Execute an AWS API call with retries and standardized results.

    Throttling errors are retried with exponential backoff; every other
    failure is returned as an error OperationResult.

    Args:
        service_name: AWS service name
        method: Client method name (e.g., 'get_item')
        session_config: Optional boto3 session kwargs
        client_config: Optional client kwargs
        max_retries: Retries after the first attempt for throttling errors
        backoff_factor: Base delay multiplier in seconds
        **kwargs: Arguments for the client method

    Returns:
        OperationResult with the raw response in ``data`` on success
    """
    last_exc: Optional[Exception] = None

    for attempt in range(max_retries + 1):
        try:
            client = get_boto3_client(
                service_name,
                session_config=session_config,
                client_config=client_config,
            )
            response = getattr(client, method)(**kwargs)
            return OperationResult.success(
                data=response, message=f"{service_name}.{method} succeeded"
            )

        except ClientError as e:
            last_exc = e
            mapped = classify_aws_error(e)
            if mapped.is_transient and attempt < max_retries:
                delay = _calculate_retry_delay(attempt, backoff_factor)
                logger.warning(
                    "aws_api_retry",
                    service=service_name,
                    method=method,
                    attempt=attempt + 1,
                    error=str(e),
                    delay=delay,
                )
                time.sleep(delay)
                continue

            logger.error(
                "aws_api_error_final", service=service_name, method=method, error=str(e)
            )
            return mapped

        except (BotoCoreError, Exception) as e:  # pylint: disable=broad-except
            last_exc = e
            logger.error(
                "aws_api_unexpected_error",
                service=service_name,
                method=method,
                error=str(e),
            )
            return OperationResult.permanent_error(message=str(e))

    return OperationResult.permanent_error(
        message=str(last_exc) if last_exc else "unknown_error"
    )
