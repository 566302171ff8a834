"""Retryable queue of expiry actions.

Fired expiry entries become ExpiryActions on the retry queue. Each pass of
the RetryWorker hands them to ExpiryActionProcessor, which:

1. sends the email
2. removes the member from the action's groups
3. deletes the directory account when ``delete_identity`` is set

A malformed payload is a permanent failure and is dead-lettered at once.
Any other exception counts as a failed attempt and is retried with backoff.
Finished steps are marked in the payload, which the store keeps with the
failed attempt, so a retry resumes after the last step that succeeded.
"""

from typing import List, Optional

from infrastructure.logging import get_module_logger
from infrastructure.resilience.retry import (
    RetryBatchReport,
    RetryConfig,
    RetryRecord,
    RetryResult,
    RetryStore,
    RetryWorker,
)
from modules.membership.directory.base import Directory
from modules.membership.domain.errors import ValidationError, raise_for_result
from modules.membership.domain.models import ExpiryAction, Member
from modules.membership.groups import GroupBackend, remove_members_from_groups
from modules.membership.mail import MailSender, send_or_raise
from modules.membership.validation import RowError

logger = get_module_logger()

EXPIRY_OPERATION = "membership.expiry_action"

# Progress markers kept in the payload across attempts
EMAIL_SENT = "emailSent"
GROUPS_REMOVED = "groupsRemoved"


class ExpiryActionQueue:
    """Enqueue ExpiryActions on a RetryStore."""

    def __init__(self, store: RetryStore) -> None:
        self.store = store

    def enqueue(self, action: ExpiryAction, max_attempts: Optional[int] = None) -> str:
        record = RetryRecord(
            operation_type=EXPIRY_OPERATION,
            payload=action.to_payload(),
            max_attempts=max_attempts,
        )
        record_id = self.store.save(record)
        logger.info(
            "expiry_action_enqueued",
            record_id=record_id,
            email=action.email,
            action_type=action.action_type,
        )
        return record_id

    def dead_letters(self) -> List[RetryRecord]:
        return self.store.get_dlq_entries()


class ExpiryActionProcessor:
    """RetryProcessor for expiry actions.

    Attributes:
        validation_errors: Payloads rejected as malformed, for the
            consolidated validation alert
        completed: Actions that finished in this processor's lifetime
    """

    def __init__(
        self,
        mail_sender: MailSender,
        group_backend: GroupBackend,
        directory: Optional[Directory] = None,
    ) -> None:
        self._mail = mail_sender
        self._groups = group_backend
        self._directory = directory
        self.validation_errors: List[RowError] = []
        self.completed: List[ExpiryAction] = []

    def process_record(self, record: RetryRecord) -> RetryResult:
        try:
            action = ExpiryAction.from_payload(record.payload)
        except ValidationError as e:
            reason = "; ".join(e.errors)
            record.last_error = reason
            self.validation_errors.append(
                RowError(
                    row_number=0,
                    reason=reason,
                    row=dict(record.payload),
                    label=f"Queue item {record.id}",
                )
            )
            logger.warning("expiry_action_invalid", record_id=record.id, errors=e.errors)
            return RetryResult.PERMANENT_FAILURE

        if not record.payload.get(EMAIL_SENT):
            send_or_raise(self._mail, action.email, action.subject, action.html_body)
            record.payload[EMAIL_SENT] = True

        if action.groups and not record.payload.get(GROUPS_REMOVED):
            remove_members_from_groups([action.email], action.groups, self._groups.remove)
            record.payload[GROUPS_REMOVED] = True

        if action.delete_identity and self._directory is not None:
            identity = Member(
                primary_email=action.directory_email or action.email,
                home_email=action.email,
            )
            raise_for_result(
                self._directory.delete_member(identity, wait=True), "delete_member"
            )

        self.completed.append(action)
        logger.info(
            "expiry_action_completed",
            record_id=record.id,
            email=action.email,
            action_type=action.action_type,
        )
        return RetryResult.SUCCESS


def drain_expiry_queue(
    store: RetryStore,
    processor: ExpiryActionProcessor,
    config: Optional[RetryConfig] = None,
) -> RetryBatchReport:
    """Run one RetryWorker pass over the due expiry actions."""
    worker = RetryWorker(store, processor, config=config, worker_id="expiry-actions")
    return worker.process_batch()
