"""Shared fixtures for retry queue tests."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import pytest

from infrastructure.persistence.property_store import InMemoryPropertyStore
from infrastructure.resilience.retry import (
    InMemoryRetryStore,
    PropertyRetryStore,
    RetryConfig,
    RetryRecord,
    RetryResult,
)

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class Clock:
    """Settable clock for stores and workers."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def retry_config_factory():
    """Factory for creating RetryConfig instances."""

    def _factory(
        max_attempts: int = 3,
        base_delay_seconds: int = 60,
        max_delay_seconds: int = 3600,
        batch_size: int = 10,
    ) -> RetryConfig:
        return RetryConfig(
            max_attempts=max_attempts,
            base_delay_seconds=base_delay_seconds,
            max_delay_seconds=max_delay_seconds,
            batch_size=batch_size,
        )

    return _factory


@pytest.fixture
def retry_record_factory():
    """Factory for creating RetryRecord instances."""

    def _factory(
        operation_type: str = "test.operation",
        payload: Optional[Dict[str, Any]] = None,
        max_attempts: Optional[int] = None,
    ) -> RetryRecord:
        return RetryRecord(
            operation_type=operation_type,
            payload=payload if payload is not None else {"task_id": "t1"},
            max_attempts=max_attempts,
        )

    return _factory


@pytest.fixture
def retry_store(retry_config_factory, clock):
    return InMemoryRetryStore(retry_config_factory(), clock=clock)


@pytest.fixture
def property_backing():
    return InMemoryPropertyStore()


@pytest.fixture
def property_retry_store(retry_config_factory, property_backing, clock):
    return PropertyRetryStore(property_backing, retry_config_factory(), clock=clock)


@pytest.fixture
def mock_processor():
    """Processor returning a configurable result, or raising."""

    class MockProcessor:
        def __init__(self):
            self.processed_records = []
            self.result = RetryResult.SUCCESS
            self.error: Optional[Exception] = None
            self.fail_ids: set = set()

        def set_result(self, result: RetryResult) -> None:
            self.result = result

        def process_record(self, record: RetryRecord) -> RetryResult:
            self.processed_records.append(record)
            if self.error is not None or record.id in self.fail_ids:
                raise self.error or RuntimeError(f"failed {record.id}")
            return self.result

    return MockProcessor()
