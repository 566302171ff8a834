"""Google Gmail API client with standardized OperationResult responses."""

import base64
from email.message import EmailMessage
from typing import Any, Optional

import structlog

from infrastructure.clients.google_workspace.executor import execute_google_api_call
from infrastructure.clients.google_workspace.session_provider import SessionProvider
from infrastructure.operations.result import OperationResult

GMAIL_SEND_SCOPE = "https://www.googleapis.com/auth/gmail.send"

logger = structlog.get_logger()


class GmailClient:
    """Client for sending mail through the Gmail API.

    Args:
        session_provider: SessionProvider instance for Google API authentication
    """

    def __init__(self, session_provider: SessionProvider) -> None:
        self._session_provider = session_provider
        self._logger = logger.bind(component="google_gmail_client")

    def send_email(
        self,
        subject: str,
        body: str,
        sender: str,
        recipient: str,
        content_type: str = "plain",
        reply_to: Optional[str] = None,
        user_id: str = "me",
        delegated_email: Optional[str] = None,
    ) -> OperationResult:
        """Send an email via Gmail API.

        Args:
            subject: Email subject line
            body: Email body content
            sender: Sender email address
            recipient: Recipient email address
            content_type: Content type ('plain' or 'html'), defaults to 'plain'
            reply_to: Optional Reply-To address
            user_id: User ID for Gmail API (defaults to 'me')
            delegated_email: Optional email to delegate authentication to

        Returns:
            OperationResult with message data containing id, threadId, and labelIds

        Reference:
            https://developers.google.com/gmail/api/reference/rest/v1/users.messages/send
        """
        self._logger.info(
            "sending_email",
            subject=subject,
            sender=sender,
            recipient=recipient,
            content_type=content_type,
        )

        try:
            raw_message = self._create_mime_message(
                subject=subject,
                body=body,
                sender=sender,
                recipient=recipient,
                content_type=content_type,
                reply_to=reply_to,
            )
        except (TypeError, ValueError) as e:
            self._logger.error("failed_to_create_mime_message", error=str(e))
            return OperationResult.permanent_error(
                message=f"Failed to create email message: {str(e)}",
                error_code="MIME_CREATION_ERROR",
            )

        def api_call() -> Any:
            service = self._session_provider.get_service(
                service_name="gmail",
                version="v1",
                scopes=[GMAIL_SEND_SCOPE],
                delegated_user_email=delegated_email or sender,
            )
            return (
                service.users()
                .messages()
                .send(userId=user_id, body={"raw": raw_message})
                .execute()
            )

        return execute_google_api_call(
            operation_name="gmail.users.messages.send",
            api_callable=api_call,
        )

    @staticmethod
    def _create_mime_message(
        subject: str,
        body: str,
        sender: str,
        recipient: str,
        content_type: str = "plain",
        reply_to: Optional[str] = None,
    ) -> str:
        """Create a base64url-encoded MIME message for the Gmail API."""
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = sender
        message["To"] = recipient
        if reply_to:
            message["Reply-To"] = reply_to

        if content_type == "html":
            message.set_content(body, subtype="html")
        else:
            message.set_content(body)

        return base64.urlsafe_b64encode(message.as_bytes()).decode("utf-8")
