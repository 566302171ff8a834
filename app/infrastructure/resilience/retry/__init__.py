"""Retry queue for failed operations.

Architecture:
- RetryRecord: persisted unit of retryable work (attempts, timestamps, dead flag)
- RetryStore: FIFO storage with in-memory and property-store implementations
- RetryWorker: one processing pass over eligible records
- RetryProcessor: protocol for module-specific work
- RetryConfig / exponential_backoff: limits and default backoff policy

Usage:
    store = InMemoryRetryStore(RetryConfig(max_attempts=3))
    worker = RetryWorker(store, MyProcessor())
    report = worker.process_batch()
"""

from infrastructure.resilience.retry.config import (
    BackoffPolicy,
    RetryConfig,
    exponential_backoff,
)
from infrastructure.resilience.retry.models import RetryRecord, RetryResult
from infrastructure.resilience.retry.store import (
    InMemoryRetryStore,
    PropertyRetryStore,
    RetryStore,
)
from infrastructure.resilience.retry.worker import (
    RetryBatchReport,
    RetryProcessor,
    RetryWorker,
)
from infrastructure.resilience.retry.factory import (
    create_retry_store,
    retry_config_from_settings,
)

__all__ = [
    # Models
    "RetryRecord",
    "RetryResult",
    # Configuration
    "RetryConfig",
    "BackoffPolicy",
    "exponential_backoff",
    # Store
    "RetryStore",
    "InMemoryRetryStore",
    "PropertyRetryStore",
    # Worker
    "RetryWorker",
    "RetryProcessor",
    "RetryBatchReport",
    # Factory
    "create_retry_store",
    "retry_config_from_settings",
]
