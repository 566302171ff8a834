"""Unit tests for the Google Workspace directory client."""

from unittest.mock import MagicMock

import pytest

from infrastructure.clients.google_workspace.directory import (
    GROUP_MEMBER_SCOPE,
    USER_SCOPE,
    DirectoryClient,
)
from infrastructure.operations.status import OperationStatus


@pytest.mark.unit
class TestUsers:
    def test_get_user(self, mock_session_provider):
        client = DirectoryClient(mock_session_provider)
        mock_service = mock_session_provider.get_service.return_value
        mock_service.users().get().execute.return_value = {"primaryEmail": "a@club.example"}

        result = client.get_user("a@club.example")

        assert result.is_success
        assert result.data["primaryEmail"] == "a@club.example"
        mock_session_provider.get_service.assert_called_with(
            "admin", "directory_v1", scopes=[USER_SCOPE], delegated_user_email=None
        )

    def test_get_missing_user_is_not_found(self, mock_session_provider, http_error_factory):
        client = DirectoryClient(mock_session_provider)
        mock_service = mock_session_provider.get_service.return_value
        mock_service.users().get().execute.side_effect = http_error_factory(404)

        result = client.get_user("nobody@club.example")

        assert result.status == OperationStatus.NOT_FOUND

    def test_list_users_paginates(self, mock_session_provider):
        client = DirectoryClient(mock_session_provider, default_customer_id="C123")
        mock_service = mock_session_provider.get_service.return_value
        first_request = mock_service.users().list.return_value
        first_request.execute.return_value = {"users": [{"id": "1"}]}
        next_request = MagicMock()
        next_request.execute.return_value = {"users": [{"id": "2"}]}
        mock_service.users().list_next.side_effect = [next_request, None]

        result = client.list_users(query="isSuspended=false")

        assert result.is_success
        assert [u["id"] for u in result.data] == ["1", "2"]
        mock_service.users().list.assert_called_with(
            customer="C123", query="isSuspended=false"
        )

    def test_create_update_delete(self, mock_session_provider):
        client = DirectoryClient(mock_session_provider)
        mock_service = mock_session_provider.get_service.return_value
        mock_service.users().insert().execute.return_value = {"id": "new"}
        mock_service.users().update().execute.return_value = {"id": "new"}

        assert client.create_user({"primaryEmail": "a@club.example"}).data == {"id": "new"}
        assert client.update_user("a@club.example", {"suspended": False}).is_success
        assert client.delete_user("a@club.example").is_success
        mock_service.users().delete.assert_called_with(userKey="a@club.example")


@pytest.mark.unit
class TestGroupMembers:
    def test_add_member_uses_group_scope(self, mock_session_provider):
        client = DirectoryClient(mock_session_provider)
        mock_service = mock_session_provider.get_service.return_value
        mock_service.members().insert().execute.return_value = {"email": "a@x.com"}

        result = client.add_member("g1@club.example", {"email": "a@x.com", "role": "MEMBER"})

        assert result.is_success
        mock_session_provider.get_service.assert_called_with(
            "admin",
            "directory_v1",
            scopes=[GROUP_MEMBER_SCOPE],
            delegated_user_email=None,
        )

    def test_remove_member_conflict_message_kept(self, mock_session_provider, http_error_factory):
        client = DirectoryClient(mock_session_provider)
        mock_service = mock_session_provider.get_service.return_value
        mock_service.members().delete().execute.side_effect = http_error_factory(
            400, b"Resource Not Found: memberKey"
        )

        result = client.remove_member("g1@club.example", "a@x.com")

        assert not result.is_success
        assert "Resource Not Found: memberKey" in result.message
