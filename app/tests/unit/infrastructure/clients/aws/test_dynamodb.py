"""Unit tests for the DynamoDB client and the AWS call executor."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from infrastructure.clients.aws.client import execute_aws_api_call
from infrastructure.clients.aws.dynamodb import DynamoDBClient
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "GetItem")


@pytest.mark.unit
class TestDynamoDBClient:
    def test_get_item_calls_execute(self, monkeypatch):
        captured = {}

        def fake_execute(service_name, method, **kwargs):
            captured["service"] = service_name
            captured["method"] = method
            captured.update(kwargs)
            return OperationResult.success(data={"Item": {"key": {"S": "1"}}})

        monkeypatch.setattr(
            "infrastructure.clients.aws.dynamodb.execute_aws_api_call", fake_execute
        )

        client = DynamoDBClient(region="ca-central-1", endpoint_url="http://localhost:8000")
        res = client.get_item("tbl", {"key": {"S": "1"}}, ConsistentRead=True)

        assert res.is_success
        assert captured["service"] == "dynamodb"
        assert captured["method"] == "get_item"
        assert captured["TableName"] == "tbl"
        assert captured["ConsistentRead"] is True
        assert captured["session_config"] == {"region_name": "ca-central-1"}
        assert captured["client_config"] == {"endpoint_url": "http://localhost:8000"}

    def test_default_kwargs_are_none(self):
        kwargs = DynamoDBClient()._client_kwargs()
        assert kwargs == {"session_config": None, "client_config": None}


@pytest.mark.unit
class TestExecuteAwsApiCall:
    @patch("infrastructure.clients.aws.client.get_boto3_client")
    def test_success_wraps_response(self, mock_get_client):
        mock_get_client.return_value.put_item.return_value = {"ok": True}

        result = execute_aws_api_call("dynamodb", "put_item", TableName="t", Item={})

        assert result.is_success
        assert result.data == {"ok": True}

    @patch("infrastructure.clients.aws.client.time.sleep")
    @patch("infrastructure.clients.aws.client.get_boto3_client")
    def test_throttling_is_retried(self, mock_get_client, mock_sleep):
        method = MagicMock(
            side_effect=[_client_error("ThrottlingException"), {"Item": {}}]
        )
        mock_get_client.return_value.get_item = method

        result = execute_aws_api_call("dynamodb", "get_item", TableName="t", Key={})

        assert result.is_success
        assert method.call_count == 2
        mock_sleep.assert_called_once_with(0.5)

    @patch("infrastructure.clients.aws.client.get_boto3_client")
    def test_resource_not_found_is_not_retried(self, mock_get_client):
        method = MagicMock(side_effect=_client_error("ResourceNotFoundException"))
        mock_get_client.return_value.get_item = method

        result = execute_aws_api_call("dynamodb", "get_item", TableName="t", Key={})

        assert result.status == OperationStatus.NOT_FOUND
        assert method.call_count == 1

    @patch("infrastructure.clients.aws.client.get_boto3_client")
    def test_unexpected_error_is_permanent(self, mock_get_client):
        mock_get_client.return_value.get_item.side_effect = RuntimeError("socket")

        result = execute_aws_api_call("dynamodb", "get_item", TableName="t", Key={})

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.message == "socket"
