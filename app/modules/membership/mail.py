"""Outgoing lifecycle email."""

from dataclasses import dataclass
from typing import Dict, List, Protocol

from infrastructure.clients.google_workspace.gmail import GmailClient
from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult
from modules.membership.domain.errors import DeliveryError

logger = get_module_logger()


class MailSender(Protocol):
    def send(self, to: str, subject: str, html_body: str) -> OperationResult:
        """Send an HTML email. Failures are returned, not raised."""
        ...


def send_or_raise(sender: MailSender, to: str, subject: str, html_body: str) -> None:
    """Send through ``sender`` and raise DeliveryError on failure."""
    result = sender.send(to, subject, html_body)
    if not result.is_ok:
        raise DeliveryError(f"Failed to send email to {to}: {result.message}", result)


class GmailMailSender:
    """MailSender backed by the Gmail API.

    Replies go to the membership address. With ``test_emails`` set, messages
    are logged and not sent.
    """

    def __init__(
        self,
        client: GmailClient,
        sender: str,
        reply_to: str,
        test_emails: bool = False,
    ) -> None:
        self._client = client
        self.sender = sender
        self.reply_to = reply_to
        self.test_emails = test_emails

    def send(self, to: str, subject: str, html_body: str) -> OperationResult:
        if self.test_emails:
            logger.info(
                "test_email_logged_only",
                to=to,
                subject=subject,
                reply_to=self.reply_to,
                html_body=html_body,
            )
            return OperationResult.success(message="test mode, email logged only")

        result = self._client.send_email(
            subject=subject,
            body=html_body,
            sender=self.sender,
            recipient=to,
            content_type="html",
            reply_to=self.reply_to,
        )
        if result.is_success:
            logger.info("email_sent", to=to, subject=subject)
        else:
            logger.error("email_send_failed", to=to, subject=subject, error=result.message)
        return result


@dataclass
class SentMessage:
    to: str
    subject: str
    html_body: str


class InMemoryMailSender:
    """Records messages instead of sending them.

    Attributes:
        sent: Delivered messages in order
        failures: recipient -> error message; sends to those addresses fail
    """

    def __init__(self) -> None:
        self.sent: List[SentMessage] = []
        self.failures: Dict[str, str] = {}

    def send(self, to: str, subject: str, html_body: str) -> OperationResult:
        if to in self.failures:
            return OperationResult.transient_error(self.failures[to])
        self.sent.append(SentMessage(to=to, subject=subject, html_body=html_body))
        return OperationResult.success()

    def to(self, address: str) -> List[SentMessage]:
        return [m for m in self.sent if m.to == address]
