"""Retry queue models.

A RetryRecord is one unit of retryable work (a QueueItem). Module-specific
data lives in ``payload``; the tracking fields belong to the queue.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class RetryResult(Enum):
    """Outcome of processing a retry record.

    Values:
        SUCCESS: Operation completed successfully, remove from queue
        RETRY: Operation failed but is retryable, schedule for retry
        PERMANENT_FAILURE: Operation failed permanently, move to dead letter
    """

    SUCCESS = "success"
    RETRY = "retry"
    PERMANENT_FAILURE = "permanent_failure"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp; empty or invalid values become None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class RetryRecord:
    """Retryable unit of work.

    Fields:
        operation_type: Namespace identifier (e.g., "membership.expiry_action")
        payload: Module-specific data
        id: Unique identifier (assigned by store)
        attempts: Number of failed attempts so far
        last_error: Last error message encountered
        last_attempt_at: When the last failed attempt happened
        next_retry_at: Earliest time the record is eligible again
        max_attempts: Per-record override of the configured maximum
        dead: True once the record has been dead-lettered
        created_at: When the record was first created
        updated_at: When the record was last updated
    """

    operation_type: str
    payload: Dict[str, Any]

    id: Optional[str] = None
    attempts: int = 0
    last_error: Optional[str] = None
    last_attempt_at: Optional[datetime] = None
    next_retry_at: Optional[datetime] = None
    max_attempts: Optional[int] = None
    dead: bool = False

    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        """Validate required fields."""
        if not self.operation_type:
            raise ValueError("operation_type is required")
        if not isinstance(self.payload, dict):
            raise ValueError("payload must be a dictionary")
        if self.attempts < 0:
            raise ValueError("attempts must not be negative")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts override must be at least 1")

    def is_eligible(self, now: datetime) -> bool:
        """Eligible when not dead and next_retry_at is unset or reached."""
        if self.dead:
            return False
        return self.next_retry_at is None or self.next_retry_at <= now

    def effective_max_attempts(self, default: int) -> int:
        return self.max_attempts if self.max_attempts is not None else default

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "id": self.id,
            "operation_type": self.operation_type,
            "payload": self.payload,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "last_attempt_at": _format_timestamp(self.last_attempt_at),
            "next_retry_at": _format_timestamp(self.next_retry_at),
            "max_attempts": self.max_attempts,
            "dead": self.dead,
            "created_at": _format_timestamp(self.created_at),
            "updated_at": _format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetryRecord":
        """Rebuild a record from ``to_dict`` output.

        Invalid or empty timestamps are read as None, which leaves the record
        eligible.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        if not isinstance(data, dict):
            raise ValueError("retry record must be a mapping")
        max_attempts = data.get("max_attempts")
        return cls(
            operation_type=data.get("operation_type") or "",
            payload=data.get("payload"),  # type: ignore[arg-type]
            id=data.get("id"),
            attempts=int(data.get("attempts") or 0),
            last_error=data.get("last_error"),
            last_attempt_at=_parse_timestamp(data.get("last_attempt_at")),
            next_retry_at=_parse_timestamp(data.get("next_retry_at")),
            max_attempts=None if max_attempts in (None, "") else int(max_attempts),
            dead=bool(data.get("dead", False)),
            created_at=_parse_timestamp(data.get("created_at")) or _utcnow(),
            updated_at=_parse_timestamp(data.get("updated_at")) or _utcnow(),
        )
