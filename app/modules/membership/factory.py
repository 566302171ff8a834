"""Build a MembershipService from application settings.

Wires the Google Workspace adapters (sheets, directory, groups, Gmail) and
the retry queue from ``infrastructure.services`` into one service.
"""

from typing import Optional

from infrastructure.clients.google_workspace import GoogleWorkspaceClients
from infrastructure.configuration import Settings
from infrastructure.logging import get_module_logger
from infrastructure.resilience.retry import RetryStore, retry_config_from_settings
from infrastructure.services.providers import (
    get_google_workspace_clients,
    get_retry_store,
    get_settings,
)
from modules.membership.directory.google import GoogleWorkspaceDirectory
from modules.membership.groups import GoogleGroupBackend
from modules.membership.mail import GmailMailSender
from modules.membership.service import MembershipService
from modules.membership.tables import SheetsTable

logger = get_module_logger()


def create_membership_service(
    settings: Optional[Settings] = None,
    clients: Optional[GoogleWorkspaceClients] = None,
    retry_store: Optional[RetryStore] = None,
) -> MembershipService:
    """MembershipService backed by Google Workspace.

    Raises:
        ValueError: If MEMBERSHIP_SPREADSHEET_ID is not set
    """
    settings = settings or get_settings()
    clients = clients or get_google_workspace_clients()
    membership = settings.membership

    spreadsheet_id = settings.google_workspace.MEMBERSHIP_SPREADSHEET_ID
    if not spreadsheet_id:
        raise ValueError("MEMBERSHIP_SPREADSHEET_ID is required")

    directory = (
        GoogleWorkspaceDirectory.from_settings(clients.directory, membership)
        if membership.provision_directory
        else None
    )
    logger.info(
        "membership_service_created",
        domain=membership.domain,
        provision_directory=membership.provision_directory,
        groups=membership.group_list,
    )
    return MembershipService(
        tables=SheetsTable(clients.sheets, spreadsheet_id, drive=clients.drive),
        group_backend=GoogleGroupBackend(
            clients.directory,
            test_adds=membership.test_group_adds,
            test_removes=membership.test_group_removes,
        ),
        mail_sender=GmailMailSender(
            clients.gmail,
            sender=membership.effective_sender,
            reply_to=membership.effective_reply_to,
            test_emails=membership.test_emails,
        ),
        retry_store=retry_store or get_retry_store(),
        settings=membership,
        directory=directory,
        retry_config=retry_config_from_settings(settings.retry),
    )
