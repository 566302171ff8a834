"""Drive client for Google Workspace operations.

Only file metadata is needed: the payment poller compares a spreadsheet's
``modifiedTime`` against the last processed time.
"""

from typing import TYPE_CHECKING, Any, Optional

import structlog

from infrastructure.clients.google_workspace.executor import execute_google_api_call
from infrastructure.operations.result import OperationResult

if TYPE_CHECKING:
    from infrastructure.clients.google_workspace.session_provider import (
        SessionProvider,
    )

logger = structlog.get_logger()

DRIVE_METADATA_READONLY_SCOPE = "https://www.googleapis.com/auth/drive.metadata.readonly"


class DriveClient:
    """Client for Google Drive file metadata.

    Usage:
        result = drive_client.get_file(file_id="abc123", fields="modifiedTime")
        if result.is_success:
            modified = result.data["modifiedTime"]
    """

    def __init__(self, session_provider: "SessionProvider") -> None:
        self._session_provider = session_provider
        self._logger = logger.bind(client="drive")

    def get_file(
        self,
        file_id: str,
        fields: Optional[str] = None,
        delegated_email: Optional[str] = None,
    ) -> OperationResult:
        """Get file metadata by ID.

        Args:
            file_id: File ID to retrieve
            fields: Optional fields to include in response
            delegated_email: Optional email to delegate authentication to

        Returns:
            OperationResult with file metadata
        """
        self._logger.debug("getting_file", file_id=file_id)

        def api_call() -> Any:
            service = self._session_provider.get_service(
                service_name="drive",
                version="v3",
                scopes=[DRIVE_METADATA_READONLY_SCOPE],
                delegated_user_email=delegated_email,
            )
            return (
                service.files()
                .get(
                    fileId=file_id,
                    fields=fields or "id, name, modifiedTime",
                    supportsAllDrives=True,
                )
                .execute()
            )

        return execute_google_api_call(
            operation_name="drive.files.get",
            api_callable=api_call,
        )
