"""DynamoDB client for AWS operations.

Provides the item-level operations the property store needs (get, put,
delete) with OperationResult return types.
"""

from typing import Any, Dict, Optional

import structlog

from infrastructure.clients.aws.client import execute_aws_api_call
from infrastructure.operations.result import OperationResult

logger = structlog.get_logger()


class DynamoDBClient:
    """Client for DynamoDB item operations.

    Args:
        region: AWS region (e.g., 'ca-central-1')
        endpoint_url: Optional endpoint override (DynamoDB local, LocalStack)
    """

    def __init__(
        self,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ) -> None:
        self.region = region
        self.endpoint_url = endpoint_url
        self._logger = logger.bind(component="dynamodb_client")

    def _client_kwargs(self) -> Dict[str, Any]:
        session_config: Dict[str, Any] = {}
        client_config: Dict[str, Any] = {}
        if self.region:
            session_config["region_name"] = self.region
        if self.endpoint_url:
            client_config["endpoint_url"] = self.endpoint_url
        return {
            "session_config": session_config or None,
            "client_config": client_config or None,
        }

    def get_item(
        self, table_name: str, Key: Dict[str, Any], **kwargs
    ) -> OperationResult:
        """Get an item from DynamoDB.

        Args:
            table_name: Name of the DynamoDB table
            Key: Primary key of the item (e.g., {"key": {"S": "lastProcessedTime"}})
            **kwargs: Additional DynamoDB get_item parameters

        Returns:
            OperationResult with the raw response (``Item`` absent when missing)
        """
        self._logger.debug("getting_item", table_name=table_name)
        return execute_aws_api_call(
            "dynamodb",
            "get_item",
            TableName=table_name,
            Key=Key,
            **self._client_kwargs(),
            **kwargs,
        )

    def put_item(
        self, table_name: str, Item: Dict[str, Any], **kwargs
    ) -> OperationResult:
        """Put an item into DynamoDB (last writer wins)."""
        self._logger.debug("putting_item", table_name=table_name)
        return execute_aws_api_call(
            "dynamodb",
            "put_item",
            TableName=table_name,
            Item=Item,
            **self._client_kwargs(),
            **kwargs,
        )

    def delete_item(
        self, table_name: str, Key: Dict[str, Any], **kwargs
    ) -> OperationResult:
        """Delete an item from DynamoDB. Deleting a missing item succeeds."""
        self._logger.debug("deleting_item", table_name=table_name)
        return execute_aws_api_call(
            "dynamodb",
            "delete_item",
            TableName=table_name,
            Key=Key,
            **self._client_kwargs(),
            **kwargs,
        )

    def healthcheck(self) -> OperationResult:
        """Cheap ``list_tables`` call to verify the service is reachable."""
        return execute_aws_api_call(
            "dynamodb",
            "list_tables",
            max_retries=0,
            **self._client_kwargs(),
        )
