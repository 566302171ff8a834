"""Key/value property store.

Process-wide string storage used for the retry queue and the payment-check
poll state. There are no transactions and no expiry: a value lives until it
is deleted, and concurrent writers race with last-writer-wins semantics.
"""

import threading
from typing import Dict, Optional, Protocol

import structlog

from infrastructure.clients.aws.dynamodb import DynamoDBClient
from infrastructure.operations.status import OperationStatus

logger = structlog.get_logger()


class PropertyStoreError(Exception):
    """Raised when the backing store cannot be read or written."""


class PropertyStore(Protocol):
    """Get/set/delete single string values by key."""

    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    def delete(self, key: str) -> None:
        """Remove ``key``; removing a missing key is a no-op."""
        ...


class InMemoryPropertyStore:
    """Dict-backed PropertyStore for tests and local runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("property values must be strings")
        with self._lock:
            self._values[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._values)


class DynamoDBPropertyStore:
    """PropertyStore backed by a DynamoDB table.

    Table schema: partition key ``key`` (String), attribute ``value`` (String).

    Args:
        client: DynamoDBClient
        table_name: Table holding the properties
    """

    def __init__(self, client: DynamoDBClient, table_name: str) -> None:
        self._client = client
        self.table_name = table_name
        self._log = logger.bind(component="dynamodb_property_store", table=table_name)

    def get(self, key: str) -> Optional[str]:
        result = self._client.get_item(
            self.table_name, Key={"key": {"S": key}}, ConsistentRead=True
        )
        if result.status == OperationStatus.NOT_FOUND:
            return None
        if not result.is_success:
            self._log.error("property_read_failed", key=key, error=result.message)
            raise PropertyStoreError(f"Failed to read property {key}: {result.message}")
        item = (result.data or {}).get("Item")
        if not item:
            return None
        return item.get("value", {}).get("S")

    def set(self, key: str, value: str) -> None:
        result = self._client.put_item(
            self.table_name, Item={"key": {"S": key}, "value": {"S": value}}
        )
        if not result.is_success:
            self._log.error("property_write_failed", key=key, error=result.message)
            raise PropertyStoreError(f"Failed to write property {key}: {result.message}")

    def delete(self, key: str) -> None:
        result = self._client.delete_item(self.table_name, Key={"key": {"S": key}})
        if not result.is_success and result.status != OperationStatus.NOT_FOUND:
            self._log.error("property_delete_failed", key=key, error=result.message)
            raise PropertyStoreError(
                f"Failed to delete property {key}: {result.message}"
            )
