"""Google Workspace clients for the infrastructure layer.

Public API:
- GoogleWorkspaceClients: Facade composing the per-service clients
- DirectoryClient, DriveClient, GmailClient, SheetsClient

Application code obtains the facade from
``infrastructure.services.providers.get_google_workspace_clients``.
"""

from infrastructure.clients.google_workspace.directory import DirectoryClient
from infrastructure.clients.google_workspace.drive import DriveClient
from infrastructure.clients.google_workspace.facade import GoogleWorkspaceClients
from infrastructure.clients.google_workspace.gmail import GmailClient
from infrastructure.clients.google_workspace.sheets import SheetsClient

__all__ = [
    "DirectoryClient",
    "DriveClient",
    "GmailClient",
    "GoogleWorkspaceClients",
    "SheetsClient",
]
