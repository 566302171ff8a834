"""Infrastructure AWS clients public API.

    from infrastructure.clients.aws import DynamoDBClient

    client = DynamoDBClient(region="ca-central-1")
    result = client.get_item("membership-properties", {"key": {"S": "k"}})
"""

from infrastructure.clients.aws.client import execute_aws_api_call, get_boto3_client
from infrastructure.clients.aws.dynamodb import DynamoDBClient

__all__ = [
    "DynamoDBClient",
    "execute_aws_api_call",
    "get_boto3_client",
]
