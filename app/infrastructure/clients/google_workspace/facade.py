"""Google Workspace clients facade for all service operations."""

from typing import TYPE_CHECKING

import structlog

from infrastructure.clients.google_workspace.directory import DirectoryClient
from infrastructure.clients.google_workspace.drive import DriveClient
from infrastructure.clients.google_workspace.gmail import GmailClient
from infrastructure.clients.google_workspace.session_provider import SessionProvider
from infrastructure.clients.google_workspace.sheets import SheetsClient

if TYPE_CHECKING:
    from infrastructure.configuration.integrations.google import (
        GoogleWorkspaceSettings,
    )

logger = structlog.get_logger()


class GoogleWorkspaceClients:
    """Facade for the Google Workspace service clients.

    Args:
        google_settings: Google Workspace configuration from settings.google_workspace

    Attributes:
        directory: DirectoryClient for users and group members
        drive: DriveClient for file metadata
        sheets: SheetsClient for spreadsheet values
        gmail: GmailClient for sending mail
    """

    _session_provider: SessionProvider
    directory: DirectoryClient
    drive: DriveClient
    sheets: SheetsClient
    gmail: GmailClient

    def __init__(self, google_settings: "GoogleWorkspaceSettings") -> None:
        self._session_provider = SessionProvider(
            credentials_json=google_settings.GCP_SERVICE_ACCOUNT_KEY,
            default_delegated_email=google_settings.GOOGLE_DELEGATED_ADMIN_EMAIL,
            default_scopes=[],  # Each service specifies its own scopes
        )

        self.directory = DirectoryClient(
            session_provider=self._session_provider,
            default_customer_id=google_settings.GOOGLE_WORKSPACE_CUSTOMER_ID,
        )
        self.drive = DriveClient(session_provider=self._session_provider)
        self.sheets = SheetsClient(session_provider=self._session_provider)
        self.gmail = GmailClient(session_provider=self._session_provider)

        self._logger = logger.bind(component="google_workspace_clients")
