"""Factory for creating retry stores based on configuration."""

from typing import Optional

import structlog

from infrastructure.configuration.infrastructure.retry import RetrySettings
from infrastructure.persistence.property_store import PropertyStore
from infrastructure.resilience.retry.config import BackoffPolicy, RetryConfig
from infrastructure.resilience.retry.store import (
    InMemoryRetryStore,
    PropertyRetryStore,
    RetryStore,
)

logger = structlog.get_logger()


def retry_config_from_settings(retry_settings: RetrySettings) -> RetryConfig:
    return RetryConfig(
        max_attempts=retry_settings.max_attempts,
        base_delay_seconds=retry_settings.base_delay_seconds,
        max_delay_seconds=retry_settings.max_delay_seconds,
        batch_size=retry_settings.batch_size,
    )


def create_retry_store(
    retry_settings: RetrySettings,
    property_store: Optional[PropertyStore] = None,
    backend: Optional[str] = None,
    backoff: Optional[BackoffPolicy] = None,
) -> RetryStore:
    """Create the retry store selected by configuration.

    Args:
        retry_settings: Retry settings (backend, limits, property keys)
        property_store: Required for the 'property' backend
        backend: Optional backend override ('memory' or 'property')
        backoff: Optional backoff policy (defaults to exponential)

    Returns:
        RetryStore implementation

    Raises:
        ValueError: If the backend is unknown or misconfigured
    """
    backend = backend or retry_settings.backend
    config = retry_config_from_settings(retry_settings)

    if backend == "memory":
        logger.info("creating_in_memory_retry_store")
        return InMemoryRetryStore(config, backoff=backoff)

    if backend == "property":
        if property_store is None:
            raise ValueError("property backend requires a property store")
        logger.info(
            "creating_property_retry_store",
            queue_key=retry_settings.queue_key,
            dead_letter_key=retry_settings.dead_letter_key,
        )
        return PropertyRetryStore(
            property_store,
            config,
            backoff=backoff,
            queue_key=retry_settings.queue_key,
            dead_letter_key=retry_settings.dead_letter_key,
        )

    raise ValueError(f"Unknown retry backend: {backend}. Supported: memory, property")
