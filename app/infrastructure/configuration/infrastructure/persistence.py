"""Property store infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class PropertyStoreSettings(InfrastructureSettings):
    """Key/value property store configuration.

    Environment Variables:
        PROPERTY_STORE_BACKEND: 'memory' or 'dynamodb'
        PROPERTY_STORE_TABLE_NAME: DynamoDB table (partition key 'key', string)
    """

    backend: str = Field(default="memory", alias="PROPERTY_STORE_BACKEND")
    table_name: str = Field(
        default="membership-properties", alias="PROPERTY_STORE_TABLE_NAME"
    )
