"""Retry record storage.

Storage interfaces and implementations for the retry queue. The queue is
FIFO: records are returned by ``fetch_due`` in insertion order, skipping
dead and not-yet-eligible records without reordering the rest.

Two backends are provided:

- ``InMemoryRetryStore``: process-local, for tests and development.
- ``PropertyRetryStore``: persisted as JSON in a key/value PropertyStore.
  Every operation re-reads the stored queue, so a later invocation always
  works from the latest write (last writer wins).
"""

import json
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol

import structlog

from infrastructure.persistence.property_store import PropertyStore
from infrastructure.resilience.retry.config import (
    BackoffPolicy,
    RetryConfig,
    exponential_backoff,
)
from infrastructure.resilience.retry.models import RetryRecord

logger = structlog.get_logger()

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RetryStore(Protocol):
    """Storage interface for retry records.

    Methods:
        save: Persist a new retry record and return its ID
        fetch_due: Return eligible records in FIFO order
        mark_success: Remove a processed record from the queue
        mark_permanent_failure: Move a record to the dead-letter record
        increment_attempt: Record a failed attempt and reschedule or dead-letter
        get_dlq_entries: Inspect dead-lettered records
    """

    def save(self, record: RetryRecord) -> str:
        """Persist a new retry record and return its ID."""
        ...

    def fetch_due(
        self, limit: int = 100, now: Optional[datetime] = None
    ) -> List[RetryRecord]:
        """Return records that are not dead and whose next_retry_at <= now."""
        ...

    def mark_success(self, record_id: str) -> None:
        """Remove a successfully processed record."""
        ...

    def mark_permanent_failure(
        self, record_id: str, reason: str, now: Optional[datetime] = None
    ) -> None:
        """Flag the record dead and move it to the dead-letter record."""
        ...

    def increment_attempt(
        self,
        record_id: str,
        last_error: Optional[str] = None,
        now: Optional[datetime] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Record a failed attempt.

        Args:
            payload: Replacement payload, so a processor can persist its
                progress with the attempt

        Returns:
            True if the record reached its maximum attempts and was
            dead-lettered, False if it was rescheduled.
        """
        ...

    def get_dlq_entries(self) -> List[RetryRecord]:
        """Return all dead-lettered records."""
        ...


def _record_failure(
    record: RetryRecord,
    last_error: Optional[str],
    now: datetime,
    config: RetryConfig,
    backoff: BackoffPolicy,
    payload: Optional[Dict[str, Any]] = None,
) -> bool:
    """Apply a failed attempt to ``record`` in place.

    Returns:
        True if the record is now dead
    """
    if payload is not None:
        record.payload = dict(payload)
    record.attempts += 1
    record.last_error = last_error
    record.last_attempt_at = now
    record.updated_at = now

    if record.attempts >= record.effective_max_attempts(config.max_attempts):
        _mark_dead(record, last_error, now)
        return True

    record.next_retry_at = now + timedelta(seconds=backoff(record.attempts))
    return False


def _mark_dead(record: RetryRecord, reason: Optional[str], now: datetime) -> None:
    record.dead = True
    record.next_retry_at = None
    record.last_error = reason
    record.updated_at = now


class InMemoryRetryStore:
    """In-memory implementation of RetryStore.

    Thread-safe store with a caller-supplied backoff policy and a
    dead-letter record that stays inspectable.

    Attributes:
        config: RetryConfig controlling retry behavior
        backoff: Callable mapping attempts to a delay in seconds
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        backoff: Optional[BackoffPolicy] = None,
        clock: Clock = _utcnow,
    ) -> None:
        self._store: Dict[str, RetryRecord] = {}
        self._dlq: Dict[str, RetryRecord] = {}
        self._lock = threading.Lock()
        self._next_id = 1
        self._clock = clock

        self.config = config or RetryConfig()
        self.backoff = backoff or exponential_backoff(self.config)

    def save(self, record: RetryRecord) -> str:
        """Save a new retry record, eligible immediately."""
        with self._lock:
            now = self._clock()
            record_id = str(self._next_id)
            self._next_id += 1
            record.id = record_id
            record.attempts = 0
            record.dead = False
            record.created_at = now
            record.updated_at = now
            record.next_retry_at = now
            self._store[record_id] = record

            logger.info(
                "retry_record_saved",
                record_id=record_id,
                operation_type=record.operation_type,
            )
            return record_id

    def fetch_due(
        self, limit: int = 100, now: Optional[datetime] = None
    ) -> List[RetryRecord]:
        """Return eligible records in insertion order."""
        with self._lock:
            now = now or self._clock()
            due = [r for r in self._store.values() if r.is_eligible(now)][:limit]
            logger.debug(
                "fetched_due_retry_records",
                count=len(due),
                total_store_size=len(self._store),
            )
            return due

    def mark_success(self, record_id: str) -> None:
        """Remove successfully processed record from queue."""
        with self._lock:
            record = self._store.pop(record_id, None)
            if record:
                logger.info(
                    "retry_success",
                    record_id=record_id,
                    operation_type=record.operation_type,
                    attempts=record.attempts,
                )

    def mark_permanent_failure(
        self, record_id: str, reason: str, now: Optional[datetime] = None
    ) -> None:
        """Move record to the dead-letter record."""
        with self._lock:
            record = self._store.pop(record_id, None)
            if not record:
                return
            _mark_dead(record, reason, now or self._clock())
            self._dlq[record_id] = record
            logger.warning(
                "retry_permanent_failure",
                record_id=record_id,
                operation_type=record.operation_type,
                attempts=record.attempts,
                reason=reason,
            )

    def increment_attempt(
        self,
        record_id: str,
        last_error: Optional[str] = None,
        now: Optional[datetime] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Record a failed attempt; dead-letter at the maximum."""
        with self._lock:
            record = self._store.get(record_id)
            if not record:
                logger.warning("retry_increment_failed_not_found", record_id=record_id)
                return False

            now = now or self._clock()
            dead = _record_failure(
                record, last_error, now, self.config, self.backoff, payload
            )
            if dead:
                del self._store[record_id]
                self._dlq[record_id] = record
                logger.warning(
                    "retry_dead_lettered",
                    record_id=record_id,
                    operation_type=record.operation_type,
                    attempts=record.attempts,
                    last_error=last_error,
                )
            else:
                logger.info(
                    "retry_scheduled",
                    record_id=record_id,
                    operation_type=record.operation_type,
                    attempts=record.attempts,
                    next_retry_at=record.next_retry_at.isoformat()
                    if record.next_retry_at
                    else None,
                )
            return dead

    def get_dlq_entries(self) -> List[RetryRecord]:
        """Get all dead letter queue entries (for monitoring)."""
        with self._lock:
            return list(self._dlq.values())

    def get_stats(self) -> dict:
        """Counts of active and dead-lettered records."""
        with self._lock:
            return {
                "active_records": len(self._store),
                "dlq_records": len(self._dlq),
            }


class PropertyRetryStore:
    """RetryStore persisted as JSON in a key/value property store.

    The live queue is a JSON list under ``queue_key``; the dead-letter record
    is a JSON list under ``dead_letter_key``. There is no multi-key
    transaction, so every operation re-reads both keys and re-establishes
    the queue invariants before writing:

    - entries that cannot be parsed move to the dead-letter record together
      with the parse error
    - entries flagged dead move to the dead-letter record
    - duplicate ids keep their first occurrence

    Args:
        property_store: PropertyStore holding the queue
        config: RetryConfig controlling retry behavior
        backoff: Optional backoff policy (defaults to exponential)
        queue_key: Property key of the live queue
        dead_letter_key: Property key of the dead-letter record
        clock: Current-time provider
    """

    def __init__(
        self,
        property_store: PropertyStore,
        config: Optional[RetryConfig] = None,
        backoff: Optional[BackoffPolicy] = None,
        queue_key: str = "expiryFIFO",
        dead_letter_key: str = "expiryDeadLetter",
        clock: Clock = _utcnow,
    ) -> None:
        self._properties = property_store
        self.config = config or RetryConfig()
        self.backoff = backoff or exponential_backoff(self.config)
        self.queue_key = queue_key
        self.dead_letter_key = dead_letter_key
        self._clock = clock
        self._log = logger.bind(component="property_retry_store", queue_key=queue_key)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def _read_list(self, key: str) -> List[object]:
        raw = self._properties.get(key)
        if not raw:
            return []
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            self._log.error("retry_store_corrupt_json", key=key, error=str(e))
            return [{"raw": raw, "error": f"Unparseable queue JSON: {e}"}]
        if not isinstance(value, list):
            return [{"raw": value, "error": "Queue JSON is not a list"}]
        return value

    def _load(self) -> tuple:
        """Load (queue, dead_letters) and repair invariants.

        Returns:
            Tuple of (list of live RetryRecord, list of dead-letter dicts,
            repaired flag)
        """
        queue: List[RetryRecord] = []
        dead_letters: List[dict] = list(self._read_list(self.dead_letter_key))  # type: ignore[arg-type]
        seen: set = set()
        repaired = False

        for entry in self._read_list(self.queue_key):
            try:
                record = RetryRecord.from_dict(entry)  # type: ignore[arg-type]
            except (ValueError, TypeError) as e:
                self._log.warning("retry_record_invalid", error=str(e))
                dead_letters.append({"raw": entry, "error": str(e)})
                repaired = True
                continue
            if not record.id or record.id in seen:
                self._log.warning("retry_record_duplicate_dropped", record_id=record.id)
                repaired = True
                continue
            seen.add(record.id)
            if record.dead:
                dead_letters.append(record.to_dict())
                repaired = True
                continue
            queue.append(record)

        return queue, dead_letters, repaired

    def _write(self, queue: List[RetryRecord], dead_letters: List[dict]) -> None:
        self._properties.set(
            self.queue_key, json.dumps([r.to_dict() for r in queue])
        )
        self._properties.set(self.dead_letter_key, json.dumps(dead_letters))

    # ------------------------------------------------------------------
    # RetryStore protocol
    # ------------------------------------------------------------------

    def save(self, record: RetryRecord) -> str:
        """Append a new record at the tail of the queue, eligible now."""
        queue, dead_letters, _ = self._load()
        now = self._clock()
        record.id = record.id or uuid.uuid4().hex
        record.attempts = 0
        record.dead = False
        record.created_at = now
        record.updated_at = now
        record.next_retry_at = now
        queue.append(record)
        self._write(queue, dead_letters)
        self._log.info(
            "retry_record_saved",
            record_id=record.id,
            operation_type=record.operation_type,
        )
        return record.id

    def fetch_due(
        self, limit: int = 100, now: Optional[datetime] = None
    ) -> List[RetryRecord]:
        queue, dead_letters, repaired = self._load()
        if repaired:
            self._write(queue, dead_letters)
        now = now or self._clock()
        due = [r for r in queue if r.is_eligible(now)][:limit]
        self._log.debug("fetched_due_retry_records", count=len(due), total=len(queue))
        return due

    def mark_success(self, record_id: str) -> None:
        queue, dead_letters, _ = self._load()
        remaining = [r for r in queue if r.id != record_id]
        self._write(remaining, dead_letters)
        if len(remaining) != len(queue):
            self._log.info("retry_success", record_id=record_id)

    def mark_permanent_failure(
        self, record_id: str, reason: str, now: Optional[datetime] = None
    ) -> None:
        queue, dead_letters, _ = self._load()
        now = now or self._clock()
        remaining = []
        for record in queue:
            if record.id == record_id:
                _mark_dead(record, reason, now)
                dead_letters.append(record.to_dict())
                self._log.warning(
                    "retry_permanent_failure", record_id=record_id, reason=reason
                )
            else:
                remaining.append(record)
        self._write(remaining, dead_letters)

    def increment_attempt(
        self,
        record_id: str,
        last_error: Optional[str] = None,
        now: Optional[datetime] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> bool:
        queue, dead_letters, _ = self._load()
        now = now or self._clock()
        remaining = []
        dead = False
        found = False
        for record in queue:
            if record.id != record_id:
                remaining.append(record)
                continue
            found = True
            dead = _record_failure(
                record, last_error, now, self.config, self.backoff, payload
            )
            if dead:
                dead_letters.append(record.to_dict())
                self._log.warning(
                    "retry_dead_lettered",
                    record_id=record_id,
                    attempts=record.attempts,
                    last_error=last_error,
                )
            else:
                remaining.append(record)
                self._log.info(
                    "retry_scheduled",
                    record_id=record_id,
                    attempts=record.attempts,
                    next_retry_at=record.next_retry_at.isoformat()
                    if record.next_retry_at
                    else None,
                )
        if not found:
            self._log.warning("retry_increment_failed_not_found", record_id=record_id)
        self._write(remaining, dead_letters)
        return dead

    def get_dlq_entries(self) -> List[RetryRecord]:
        """Dead-lettered records that can still be parsed.

        Raw entries that never parsed stay in the stored dead-letter list and
        are available through ``get_raw_dead_letters``.
        """
        records = []
        for entry in self._read_list(self.dead_letter_key):
            try:
                records.append(RetryRecord.from_dict(entry))  # type: ignore[arg-type]
            except (ValueError, TypeError):
                continue
        return records

    def get_raw_dead_letters(self) -> List[object]:
        return self._read_list(self.dead_letter_key)

    def get_stats(self) -> dict:
        queue, dead_letters, _ = self._load()
        return {"active_records": len(queue), "dlq_records": len(dead_letters)}
