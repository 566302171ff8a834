"""Persistence layer: the key/value property store."""

from infrastructure.persistence.property_store import (
    DynamoDBPropertyStore,
    InMemoryPropertyStore,
    PropertyStore,
    PropertyStoreError,
)

__all__ = [
    "PropertyStore",
    "PropertyStoreError",
    "InMemoryPropertyStore",
    "DynamoDBPropertyStore",
]
