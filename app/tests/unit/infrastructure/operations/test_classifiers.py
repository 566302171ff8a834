"""Unit tests for error classifiers."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from googleapiclient.errors import HttpError

from infrastructure.operations import (
    CREATION_INCOMPLETE,
    OperationResult,
    OperationStatus,
    classify_aws_error,
    classify_directory_error,
    classify_http_error,
)


def _http_error(status: int, content: bytes = b"error", headers=None) -> HttpError:
    resp = MagicMock()
    resp.status = status
    resp.reason = "reason"
    resp.get = (headers or {}).get
    return HttpError(resp, content)


def _client_error(code: str, message: str = "boom") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, "GetItem")


@pytest.mark.unit
class TestClassifyHttpError:
    def test_rate_limit_is_transient_with_retry_after(self):
        """429 maps to TRANSIENT_ERROR and honours the retry-after header."""
        result = classify_http_error(_http_error(429, headers={"retry-after": "17"}))
        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "RATE_LIMITED"
        assert result.retry_after == 17

    def test_not_found(self):
        result = classify_http_error(_http_error(404))
        assert result.status == OperationStatus.NOT_FOUND

    def test_server_error_is_transient(self):
        result = classify_http_error(_http_error(503))
        assert result.is_transient

    def test_forbidden_is_permanent(self):
        result = classify_http_error(_http_error(403))
        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "FORBIDDEN"

    def test_message_keeps_backend_text(self):
        """The payload text survives so directory matching can use it."""
        result = classify_http_error(_http_error(409, b"Entity already exists."))
        assert "Entity already exists." in result.message

    def test_non_http_exception_is_connection_error(self):
        result = classify_http_error(ConnectionError("reset"))
        assert result.is_transient
        assert result.error_code == "CONNECTION_ERROR"


@pytest.mark.unit
class TestClassifyDirectoryError:
    def test_creation_incomplete_is_transient(self):
        result = classify_directory_error("User creation is not complete.")
        assert result.is_transient
        assert result.error_code == CREATION_INCOMPLETE

    def test_already_exists(self):
        result = classify_directory_error(
            OperationResult.permanent_error("Entity already exists.")
        )
        assert result.status == OperationStatus.ALREADY_EXISTS

    def test_resource_not_found(self):
        result = classify_directory_error("Resource Not Found: userKey")
        assert result.status == OperationStatus.NOT_FOUND

    def test_matching_is_case_insensitive(self):
        result = classify_directory_error(Exception("RESOURCE NOT FOUND"))
        assert result.status == OperationStatus.NOT_FOUND

    def test_ok_results_pass_through(self):
        ok = OperationResult.success(data="x")
        assert classify_directory_error(ok) is ok

    def test_unauthorized_result_passes_through(self):
        failure = OperationResult.error(OperationStatus.UNAUTHORIZED, "denied")
        assert classify_directory_error(failure) is failure

    def test_other_failures_are_permanent(self):
        result = classify_directory_error("Invalid Given/Family Name")
        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "DIRECTORY_ERROR"
        assert result.message == "Invalid Given/Family Name"


@pytest.mark.unit
class TestClassifyAwsError:
    def test_throttling_is_transient(self):
        result = classify_aws_error(_client_error("ThrottlingException"))
        assert result.is_transient

    def test_resource_not_found(self):
        result = classify_aws_error(_client_error("ResourceNotFoundException"))
        assert result.status == OperationStatus.NOT_FOUND

    def test_access_denied_is_unauthorized(self):
        result = classify_aws_error(_client_error("AccessDeniedException", "nope"))
        assert result.status == OperationStatus.UNAUTHORIZED
        assert result.message == "nope"

    def test_other_codes_are_permanent(self):
        result = classify_aws_error(_client_error("ValidationException"))
        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "ValidationException"
