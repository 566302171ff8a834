"""Directory client for Google Workspace operations.

Provides access to the Admin SDK Directory API for the two resources the
membership engine manages: user accounts and group members. Every method
returns an OperationResult; API failures are never raised.
"""

from typing import Any, Optional

import structlog
from googleapiclient.discovery import Resource

from infrastructure.clients.google_workspace.executor import execute_google_api_call
from infrastructure.clients.google_workspace.session_provider import SessionProvider
from infrastructure.operations.result import OperationResult

logger = structlog.get_logger()

USER_SCOPE = "https://www.googleapis.com/auth/admin.directory.user"
GROUP_MEMBER_SCOPE = "https://www.googleapis.com/auth/admin.directory.group.member"


class DirectoryClient:
    """Client for Google Workspace Directory API operations.

    Args:
        session_provider: SessionProvider for authentication
        default_customer_id: Default customer ID (usually "my_customer")
    """

    def __init__(
        self,
        session_provider: SessionProvider,
        default_customer_id: str = "my_customer",
    ) -> None:
        self._session_provider = session_provider
        self._default_customer_id = default_customer_id
        self._logger = logger.bind(component="directory_client")

    def _service(self, scope: str, delegated_email: Optional[str]) -> Resource:
        return self._session_provider.get_service(
            "admin",
            "directory_v1",
            scopes=[scope],
            delegated_user_email=delegated_email,
        )

    # ========================================================================
    # Users
    # ========================================================================

    def get_user(
        self,
        user_key: str,
        delegated_email: Optional[str] = None,
    ) -> OperationResult:
        """Get a user by key (email or user ID).

        Returns:
            OperationResult with the user resource in data field
        """
        self._logger.debug("getting_user", user_key=user_key)

        def api_call() -> dict[str, Any]:
            service = self._service(USER_SCOPE, delegated_email)
            return service.users().get(userKey=user_key, projection="full").execute()

        return execute_google_api_call("get_user", api_call)

    def list_users(
        self,
        customer: Optional[str] = None,
        delegated_email: Optional[str] = None,
        **kwargs: Any,
    ) -> OperationResult:
        """List users with automatic pagination.

        Args:
            customer: Customer ID (defaults to the client's customer)
            delegated_email: Email for domain-wide delegation
            **kwargs: Additional parameters (maxResults, query, projection, etc.)

        Returns:
            OperationResult with the list of user resources in data field
        """
        customer_id = customer or self._default_customer_id
        self._logger.debug("listing_users", customer=customer_id, **kwargs)

        def api_call() -> list[dict[str, Any]]:
            service = self._service(USER_SCOPE, delegated_email)
            all_users: list[dict[str, Any]] = []
            request = service.users().list(customer=customer_id, **kwargs)
            while request is not None:
                response = request.execute()
                all_users.extend(response.get("users", []))
                request = service.users().list_next(request, response)
            return all_users

        return execute_google_api_call("list_users", api_call)

    def create_user(
        self,
        body: dict[str, Any],
        delegated_email: Optional[str] = None,
    ) -> OperationResult:
        """Create a user. The body must include primaryEmail, name and password."""
        self._logger.info("creating_user", email=body.get("primaryEmail"))

        def api_call() -> dict[str, Any]:
            service = self._service(USER_SCOPE, delegated_email)
            return service.users().insert(body=body).execute()

        return execute_google_api_call("create_user", api_call)

    def update_user(
        self,
        user_key: str,
        body: dict[str, Any],
        delegated_email: Optional[str] = None,
    ) -> OperationResult:
        """Update an existing user with the fields in ``body``."""
        self._logger.info("updating_user", user_key=user_key)

        def api_call() -> dict[str, Any]:
            service = self._service(USER_SCOPE, delegated_email)
            return service.users().update(userKey=user_key, body=body).execute()

        return execute_google_api_call("update_user", api_call)

    def delete_user(
        self,
        user_key: str,
        delegated_email: Optional[str] = None,
    ) -> OperationResult:
        self._logger.info("deleting_user", user_key=user_key)

        def api_call() -> None:
            service = self._service(USER_SCOPE, delegated_email)
            service.users().delete(userKey=user_key).execute()
            return None

        return execute_google_api_call("delete_user", api_call)

    # ========================================================================
    # Group members
    # ========================================================================

    def add_member(
        self,
        group_key: str,
        body: dict[str, Any],
        delegated_email: Optional[str] = None,
    ) -> OperationResult:
        """Add a member to a group.

        Args:
            group_key: Group's email or unique ID
            body: Member resource body (email, role)
            delegated_email: Email for domain-wide delegation

        Returns:
            OperationResult with the member resource in data field
        """
        self._logger.info(
            "adding_member", group_key=group_key, member_email=body.get("email")
        )

        def api_call() -> dict[str, Any]:
            service = self._service(GROUP_MEMBER_SCOPE, delegated_email)
            return service.members().insert(groupKey=group_key, body=body).execute()

        return execute_google_api_call("add_member", api_call)

    def remove_member(
        self,
        group_key: str,
        member_key: str,
        delegated_email: Optional[str] = None,
    ) -> OperationResult:
        self._logger.info("removing_member", group_key=group_key, member_key=member_key)

        def api_call() -> None:
            service = self._service(GROUP_MEMBER_SCOPE, delegated_email)
            service.members().delete(groupKey=group_key, memberKey=member_key).execute()
            return None

        return execute_google_api_call("remove_member", api_call)
