"""Google Workspace session provider for authentication and service creation."""

import json
from typing import List, Optional

import structlog
from google.oauth2 import service_account
from googleapiclient.discovery import Resource, build

logger = structlog.get_logger()


class SessionProvider:
    """Builds authenticated Google API service resources.

    Centralizes service account credentials and domain-wide delegation for
    the Admin SDK, Gmail, Sheets and Drive clients.

    Args:
        credentials_json: Service account JSON key content
        default_delegated_email: Default subject for domain-wide delegation
        default_scopes: Scopes used when a client does not pass its own

    Thread Safety:
        Resource objects returned by get_service() are not thread-safe; call
        get_service() once per thread.
    """

    def __init__(
        self,
        credentials_json: str,
        default_delegated_email: Optional[str] = None,
        default_scopes: Optional[List[str]] = None,
    ) -> None:
        self._credentials_json: str = credentials_json
        self._default_delegated_email: Optional[str] = default_delegated_email
        self._default_scopes: List[str] = default_scopes or []
        self._logger = logger.bind(component="google_session_provider")

    def get_service(
        self,
        service_name: str,
        version: str,
        scopes: Optional[List[str]] = None,
        delegated_user_email: Optional[str] = None,
    ) -> Resource:
        """Create an authenticated Google API service resource.

        Args:
            service_name: Google service name (e.g., "admin", "gmail", "sheets")
            version: API version (e.g., "directory_v1", "v1", "v4")
            scopes: OAuth scopes (uses default if None)
            delegated_user_email: Subject for delegation (uses default if None)

        Returns:
            Authenticated Google API service resource

        Raises:
            ValueError: If credentials are invalid
        """
        try:
            creds_info = json.loads(self._credentials_json)
        except json.JSONDecodeError as e:
            self._logger.error("invalid_credentials_json", error=str(e))
            raise ValueError("Invalid credentials JSON") from e

        creds = service_account.Credentials.from_service_account_info(creds_info)

        delegation_email = delegated_user_email or self._default_delegated_email
        if delegation_email:
            creds = creds.with_subject(delegation_email)

        service_scopes = scopes or self._default_scopes
        if service_scopes:
            creds = creds.with_scopes(service_scopes)

        return build(
            service_name,
            version,
            credentials=creds,
            cache_discovery=False,
        )
