"""
Factory functions for dependency injection.

Provides application-scoped singleton providers for core infrastructure
services. Each provider is cached with ``functools.lru_cache`` so the whole
process shares one instance; tests call ``cache_clear()`` to reset.
"""

from functools import lru_cache

from infrastructure.clients.aws.dynamodb import DynamoDBClient
from infrastructure.clients.google_workspace import GoogleWorkspaceClients
from infrastructure.configuration import Settings
from infrastructure.persistence.property_store import (
    DynamoDBPropertyStore,
    InMemoryPropertyStore,
    PropertyStore,
)
from infrastructure.resilience.retry.factory import create_retry_store
from infrastructure.resilience.retry.store import RetryStore


@lru_cache
def get_settings() -> Settings:
    """
    Get application-scoped settings singleton.

    This is the single source of truth for settings across the entire
    application. Infrastructure packages should use this directly:

        from infrastructure.services.providers import get_settings
        settings = get_settings()

    Returns:
        Settings: Cached settings instance loaded from environment.
    """
    return Settings()


@lru_cache
def get_google_workspace_clients() -> GoogleWorkspaceClients:
    """Provider for the Google Workspace clients facade.

    Credentials are built per API call, so caching the facade is safe.
    """
    settings = get_settings()
    return GoogleWorkspaceClients(google_settings=settings.google_workspace)


@lru_cache
def get_property_store() -> PropertyStore:
    """Provider for the key/value property store.

    Returns:
        InMemoryPropertyStore for the 'memory' backend, DynamoDBPropertyStore
        for 'dynamodb'.

    Raises:
        ValueError: If PROPERTY_STORE_BACKEND is unknown
    """
    settings = get_settings()
    backend = settings.property_store.backend
    if backend == "memory":
        return InMemoryPropertyStore()
    if backend == "dynamodb":
        client = DynamoDBClient(
            region=settings.aws.AWS_REGION,
            endpoint_url=settings.aws.ENDPOINT_URL,
        )
        return DynamoDBPropertyStore(client, settings.property_store.table_name)
    raise ValueError(
        f"Unknown property store backend: {backend}. Supported: memory, dynamodb"
    )


@lru_cache
def get_retry_store() -> RetryStore:
    """Provider for the expiry action retry queue."""
    settings = get_settings()
    property_store = (
        get_property_store() if settings.retry.backend == "property" else None
    )
    return create_retry_store(settings.retry, property_store=property_store)
