"""Resilience patterns: retry-on-error, polling, and the retry queue."""

from infrastructure.resilience.policy import RetryMode, poll_until, retry_on_error
from infrastructure.resilience.retry import (
    InMemoryRetryStore,
    PropertyRetryStore,
    RetryBatchReport,
    RetryConfig,
    RetryProcessor,
    RetryRecord,
    RetryResult,
    RetryStore,
    RetryWorker,
)

__all__ = [
    # Policy
    "RetryMode",
    "retry_on_error",
    "poll_until",
    # Retry queue
    "RetryRecord",
    "RetryResult",
    "RetryConfig",
    "RetryStore",
    "InMemoryRetryStore",
    "PropertyRetryStore",
    "RetryWorker",
    "RetryProcessor",
    "RetryBatchReport",
]
