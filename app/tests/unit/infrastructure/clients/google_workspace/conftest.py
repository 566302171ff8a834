"""Shared fixtures for Google Workspace client tests."""

from unittest.mock import MagicMock, Mock

import pytest
from googleapiclient.errors import HttpError


@pytest.fixture
def mock_session_provider():
    """Mock SessionProvider that prevents actual API calls.

    Usage:
        def test_something(mock_session_provider):
            mock_service = mock_session_provider.get_service.return_value
            mock_service.users().get().execute.return_value = {"id": "123"}
    """
    provider = Mock()
    provider.get_service.return_value = MagicMock()
    return provider


@pytest.fixture
def http_error_factory():
    """Factory for googleapiclient HttpError instances."""

    def _factory(status: int, content: bytes = b"error") -> HttpError:
        resp = MagicMock()
        resp.status = status
        resp.reason = "reason"
        resp.get = {}.get
        return HttpError(resp, content)

    return _factory
