"""Backoff-driven polling for pending payments.

A new form submission starts 1-minute checks. While payments stay pending
the checks back off to every 5 minutes once more than ``short_minutes``
have passed since the submission, and to hourly after ``long_minutes``.
When nothing is pending the trigger is removed and the poller goes idle.

State lives in the property store so each run starts from what the last
one left:

- ``paymentCheckTriggerId``: installed trigger
- ``paymentCheckStartTime``: when the current burst of checks began
- ``paymentCheckInterval``: minutes between checks of the installed trigger
- ``lastProcessedTime``: when transactions were last processed
"""

import itertools
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

import schedule

from infrastructure.logging import get_module_logger
from infrastructure.persistence.property_store import PropertyStore

logger = get_module_logger()

PAYMENT_CHECK_HANDLER = "check_payment_status"

TRIGGER_ID_KEY = "paymentCheckTriggerId"
START_TIME_KEY = "paymentCheckStartTime"
INTERVAL_KEY = "paymentCheckInterval"
LAST_PROCESSED_KEY = "lastProcessedTime"

MINUTE = 1
FIVE_MINUTES = 5
HOURLY = 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.warning("poll_state_invalid_time", value=value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_interval(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class TriggerScheduler(Protocol):
    """Install and remove recurring triggers bound to a handler name."""

    def create(self, handler: str, minutes: int) -> str:
        """Run ``handler`` every ``minutes``; returns the trigger id."""
        ...

    def delete(self, trigger_id: str) -> None:
        ...

    def list(self, handler: str) -> List[str]:
        """Ids of the triggers bound to ``handler``."""
        ...


class InMemoryTriggerScheduler:
    """Records triggers without running anything.

    Attributes:
        triggers: trigger id -> (handler, minutes)
    """

    def __init__(self) -> None:
        self.triggers: Dict[str, Tuple[str, int]] = {}
        self._ids = itertools.count(1)

    def create(self, handler: str, minutes: int) -> str:
        trigger_id = f"trigger-{next(self._ids)}"
        self.triggers[trigger_id] = (handler, minutes)
        return trigger_id

    def delete(self, trigger_id: str) -> None:
        self.triggers.pop(trigger_id, None)

    def list(self, handler: str) -> List[str]:
        return [tid for tid, (h, _) in self.triggers.items() if h == handler]

    def intervals(self, handler: str) -> List[int]:
        return [m for h, m in self.triggers.values() if h == handler]


class ScheduleTriggerScheduler:
    """TriggerScheduler on a ``schedule.Scheduler``.

    Jobs are tagged with the handler name and the trigger id.

    Args:
        scheduler: The scheduler the job runner drives
        handlers: handler name -> callable to run
    """

    def __init__(
        self, scheduler: schedule.Scheduler, handlers: Dict[str, Callable[[], Any]]
    ) -> None:
        self._scheduler = scheduler
        self._handlers = handlers

    def create(self, handler: str, minutes: int) -> str:
        if handler not in self._handlers:
            raise KeyError(f"No handler registered as {handler!r}")
        trigger_id = uuid.uuid4().hex
        self._scheduler.every(minutes).minutes.do(self._handlers[handler]).tag(
            handler, trigger_id
        )
        logger.info("trigger_created", handler=handler, minutes=minutes)
        return trigger_id

    def delete(self, trigger_id: str) -> None:
        self._scheduler.clear(trigger_id)
        logger.info("trigger_deleted", trigger_id=trigger_id)

    def list(self, handler: str) -> List[str]:
        return [
            tag
            for job in self._scheduler.get_jobs(handler)
            for tag in job.tags
            if tag != handler
        ]


@dataclass
class PollState:
    trigger_id: Optional[str] = None
    start_time: Optional[datetime] = None
    interval_minutes: Optional[int] = None
    last_processed: Optional[datetime] = None

    @property
    def is_idle(self) -> bool:
        return self.interval_minutes is None

    @classmethod
    def load(cls, properties: PropertyStore) -> "PollState":
        return cls(
            trigger_id=properties.get(TRIGGER_ID_KEY) or None,
            start_time=_parse_time(properties.get(START_TIME_KEY)),
            interval_minutes=_parse_interval(properties.get(INTERVAL_KEY)),
            last_processed=_parse_time(properties.get(LAST_PROCESSED_KEY)),
        )


class PollingBackoffController:
    """Drives the payment-check trigger through idle, 1m, 5m and 60m.

    Args:
        properties: Property store for the poll state
        triggers: Trigger scheduler the handler is installed on
        pending: Processes transactions; True while payments are pending
        watermark: Last-modified time of the transaction source
        handler: Handler name the trigger runs
        short_minutes: Pending time before backing off to 5-minute checks
        long_minutes: Pending time before backing off to hourly checks
        clock: Current time, injectable for tests
    """

    def __init__(
        self,
        properties: PropertyStore,
        triggers: TriggerScheduler,
        pending: Callable[[], bool],
        watermark: Callable[[], Optional[datetime]],
        handler: str = PAYMENT_CHECK_HANDLER,
        short_minutes: int = 5,
        long_minutes: int = 15,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if short_minutes >= long_minutes:
            raise ValueError("short_minutes must be less than long_minutes")
        self._properties = properties
        self._triggers = triggers
        self._pending = pending
        self._watermark = watermark
        self.handler = handler
        self.short = timedelta(minutes=short_minutes)
        self.long = timedelta(minutes=long_minutes)
        self._clock = clock

    def state(self) -> PollState:
        return PollState.load(self._properties)

    def on_event(self, now: Optional[datetime] = None) -> PollState:
        """A new submission arrived: restart 1-minute checks."""
        now = now or self._clock()
        self._install(MINUTE, force=True)
        self._properties.set(START_TIME_KEY, now.isoformat())
        logger.info("payment_check_started", handler=self.handler)
        return self.state()

    def check(self, now: Optional[datetime] = None) -> bool:
        """One scheduled check. Returns True while payments are pending."""
        now = now or self._clock()
        state = self.state()
        start = state.start_time or now
        elapsed = now - start

        if not self._evaluate(now, state):
            self._delete_triggers()
            for key in (TRIGGER_ID_KEY, START_TIME_KEY, INTERVAL_KEY):
                self._properties.delete(key)
            logger.info("payments_processed_polling_idle")
            return False

        logger.info("payments_pending", elapsed_seconds=elapsed.total_seconds())
        if elapsed > self.long:
            self._install(HOURLY)
            self._properties.delete(START_TIME_KEY)
        elif elapsed > self.short:
            self._install(FIVE_MINUTES)
        return True

    def _evaluate(self, now: datetime, state: PollState) -> bool:
        watermark = self._watermark()
        last = state.last_processed
        if last is not None and (watermark is None or watermark <= last):
            logger.info("no_updates_since_last_check", last_processed=last.isoformat())
            return True
        self._properties.set(LAST_PROCESSED_KEY, now.isoformat())
        return bool(self._pending())

    def _install(self, minutes: int, force: bool = False) -> None:
        state = self.state()
        installed = self._triggers.list(self.handler)
        if (
            not force
            and state.interval_minutes == minutes
            and state.trigger_id in installed
        ):
            return
        self._delete_triggers()
        trigger_id = self._triggers.create(self.handler, minutes)
        self._properties.set(TRIGGER_ID_KEY, trigger_id)
        self._properties.set(INTERVAL_KEY, str(minutes))
        logger.info("payment_check_interval_set", minutes=minutes)

    def _delete_triggers(self) -> None:
        for trigger_id in self._triggers.list(self.handler):
            self._triggers.delete(trigger_id)

    def wake_if_changed(self, now: Optional[datetime] = None) -> bool:
        """Start 1-minute checks when idle and the source changed after the
        last processing. Returns True when checks were started."""
        state = self.state()
        if not state.is_idle:
            return False
        watermark = self._watermark()
        if watermark is None:
            return False
        if state.last_processed is not None and watermark <= state.last_processed:
            return False
        self.on_event(now)
        return True
