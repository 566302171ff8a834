"""Retry worker and processor protocol.

The worker drives one processing pass over the eligible records of a
RetryStore. Module-specific work is implemented via the RetryProcessor
protocol.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol

import structlog

from infrastructure.resilience.retry.config import RetryConfig
from infrastructure.resilience.retry.models import RetryRecord, RetryResult
from infrastructure.resilience.retry.store import RetryStore

logger = structlog.get_logger()


class RetryProcessor(Protocol):
    """Protocol for module-specific retry processing logic.

    Implementations either return a RetryResult or raise. A raised exception
    is recorded as the record's last error and counts as a failed attempt.

    Example:
        class ExpiryActionProcessor:
            def process_record(self, record: RetryRecord) -> RetryResult:
                send_email(record.payload["email"], ...)
                return RetryResult.SUCCESS
    """

    def process_record(self, record: RetryRecord) -> RetryResult:
        """Process a retry record.

        Args:
            record: RetryRecord to process

        Returns:
            RetryResult indicating the outcome
        """
        ...


@dataclass
class RetryBatchReport:
    """Records touched by one processing pass, grouped by outcome."""

    succeeded: List[RetryRecord] = field(default_factory=list)
    retried: List[RetryRecord] = field(default_factory=list)
    dead_lettered: List[RetryRecord] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.succeeded) + len(self.retried) + len(self.dead_lettered)

    def as_stats(self) -> dict:
        """Counts in the shape used by logs and job output."""
        return {
            "processed": self.processed,
            "successful": len(self.succeeded),
            "retried": len(self.retried),
            "permanent_failures": len(self.dead_lettered),
        }


class RetryWorker:
    """Worker for processing batches of retry records.

    - Fetches eligible records from the store in FIFO order
    - Delegates each to a RetryProcessor
    - Updates the store from the outcome; an exception from one record never
      stops the pass

    Attributes:
        store: RetryStore holding the queue
        processor: RetryProcessor for module-specific processing logic
        config: RetryConfig controlling batch size
        worker_id: Identifier for this worker instance (for logs)
    """

    def __init__(
        self,
        store: RetryStore,
        processor: RetryProcessor,
        config: Optional[RetryConfig] = None,
        worker_id: str = "retry-worker-1",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.processor = processor
        self.config = config or RetryConfig()
        self.worker_id = worker_id
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.log = logger.bind(component="retry_worker", worker_id=worker_id)

    def process_batch(self, now: Optional[datetime] = None) -> RetryBatchReport:
        """Process one batch of eligible records.

        Args:
            now: Processing time; defaults to the worker clock

        Returns:
            RetryBatchReport grouping the records by outcome

        Example:
            report = worker.process_batch()
            log.info("batch_complete", **report.as_stats())
        """
        now = now or self._clock()
        records = self.store.fetch_due(limit=self.config.batch_size, now=now)
        report = RetryBatchReport()

        if not records:
            self.log.debug("retry_batch_no_records")
            return report

        self.log.info("retry_batch_start", record_count=len(records))

        for record in records:
            self._process_record(record, now, report)

        self.log.info("retry_batch_complete", **report.as_stats())
        return report

    def _process_record(
        self, record: RetryRecord, now: datetime, report: RetryBatchReport
    ) -> None:
        record_id: str = record.id  # type: ignore[assignment]
        self.log.info(
            "retry_record_processing",
            record_id=record_id,
            operation_type=record.operation_type,
            attempt=record.attempts + 1,
        )

        try:
            result = self.processor.process_record(record)
        except Exception as e:  # pylint: disable=broad-except
            self.log.error(
                "retry_processor_exception",
                record_id=record_id,
                operation_type=record.operation_type,
                error=str(e),
            )
            self._fail(record, str(e), now, report)
            return

        if result == RetryResult.SUCCESS:
            self.store.mark_success(record_id)
            report.succeeded.append(record)
            self.log.info("retry_record_succeeded", record_id=record_id)
        elif result == RetryResult.PERMANENT_FAILURE:
            reason = record.last_error or "Processor returned permanent failure"
            self.store.mark_permanent_failure(record_id, reason=reason, now=now)
            report.dead_lettered.append(record)
            self.log.warning("retry_record_permanent_failure", record_id=record_id)
        else:
            self._fail(
                record,
                record.last_error or "Operation failed, will retry",
                now,
                report,
            )

    def _fail(
        self, record: RetryRecord, error: str, now: datetime, report: RetryBatchReport
    ) -> None:
        dead = self.store.increment_attempt(
            record.id,  # type: ignore[arg-type]
            last_error=error,
            now=now,
            payload=record.payload,
        )
        if dead:
            report.dead_lettered.append(record)
        else:
            report.retried.append(record)
