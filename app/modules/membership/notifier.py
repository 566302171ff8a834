"""Per-outcome record of what a processing run did.

The service logs every join, renewal, migration and expiry outcome here as
well as to structlog. ``report()`` renders the collected outcomes as a
plain-text summary that can be mailed to the operators.
"""

import html
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List

from infrastructure.logging import get_module_logger
from modules.membership.mail import MailSender

logger = get_module_logger()


class Outcome(Enum):
    JOIN_SUCCESS = "Join succeeded"
    JOIN_FAILURE = "Join failed"
    RENEWAL_SUCCESS = "Renewal succeeded"
    RENEWAL_FAILURE = "Renewal failed"
    PARTIAL_MATCH = "Partial match"
    MIGRATION_SUCCESS = "Migration succeeded"
    MIGRATION_FAILURE = "Migration failed"
    EXPIRY_NOTIFICATION = "Expiry notification"
    EXPIRED = "Expired"

    @property
    def is_failure(self) -> bool:
        return self in (
            Outcome.JOIN_FAILURE,
            Outcome.RENEWAL_FAILURE,
            Outcome.MIGRATION_FAILURE,
        )


@dataclass
class NotifierEntry:
    outcome: Outcome
    email: str
    detail: str = ""
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier:
    """Collects outcomes in the order they happened."""

    def __init__(
        self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ) -> None:
        self.entries: List[NotifierEntry] = []
        self._clock = clock

    def log(self, outcome: Outcome, email: str, detail: str = "") -> None:
        self.entries.append(NotifierEntry(outcome, email, detail, self._clock()))
        event = outcome.name.lower()
        if outcome.is_failure:
            logger.warning(event, email=email, detail=detail)
        else:
            logger.info(event, email=email, detail=detail)

    def join_success(self, email: str, detail: str = "") -> None:
        self.log(Outcome.JOIN_SUCCESS, email, detail)

    def join_failure(self, email: str, error: str) -> None:
        self.log(Outcome.JOIN_FAILURE, email, error)

    def renewal_success(self, email: str, detail: str = "") -> None:
        self.log(Outcome.RENEWAL_SUCCESS, email, detail)

    def renewal_failure(self, email: str, error: str) -> None:
        self.log(Outcome.RENEWAL_FAILURE, email, error)

    def partial_match(self, email: str, detail: str) -> None:
        self.log(Outcome.PARTIAL_MATCH, email, detail)

    def migration_success(self, email: str, detail: str = "") -> None:
        self.log(Outcome.MIGRATION_SUCCESS, email, detail)

    def migration_failure(self, email: str, error: str) -> None:
        self.log(Outcome.MIGRATION_FAILURE, email, error)

    def expiry_notification(self, email: str, action_type: str) -> None:
        self.log(Outcome.EXPIRY_NOTIFICATION, email, action_type)

    def expired(self, email: str) -> None:
        self.log(Outcome.EXPIRED, email)

    def of(self, outcome: Outcome) -> List[NotifierEntry]:
        return [e for e in self.entries if e.outcome == outcome]

    def counts(self) -> Dict[Outcome, int]:
        counts: Dict[Outcome, int] = {}
        for entry in self.entries:
            counts[entry.outcome] = counts.get(entry.outcome, 0) + 1
        return counts

    def clear(self) -> None:
        self.entries = []

    def report(self) -> str:
        """Plain-text summary grouped by outcome, in Outcome order."""
        if not self.entries:
            return "No membership activity."
        lines: List[str] = []
        for outcome in Outcome:
            entries = self.of(outcome)
            if not entries:
                continue
            lines.append(f"{outcome.value} ({len(entries)}):")
            for entry in entries:
                suffix = f": {entry.detail}" if entry.detail else ""
                lines.append(f"  - {entry.email}{suffix}")
        return "\n".join(lines)

    def send_report(
        self,
        mail_sender: MailSender,
        recipient: str,
        subject: str = "Membership Processing Report",
    ) -> bool:
        """Mail the report. Returns False when there is nothing to report or
        the send failed."""
        if not self.entries:
            return False
        body = f"<pre>{html.escape(self.report())}</pre>"
        result = mail_sender.send(recipient, subject, body)
        if not result.is_ok:
            logger.error("notifier_report_failed", recipient=recipient, error=result.message)
            return False
        logger.info("notifier_report_sent", recipient=recipient, entries=len(self.entries))
        return True
