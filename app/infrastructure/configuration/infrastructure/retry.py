"""Retry queue infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class RetrySettings(InfrastructureSettings):
    """Retry queue configuration for failed expiry actions.

    Environment Variables:
        RETRY_BACKEND: 'memory' or 'property' (persisted in the property store)
        RETRY_MAX_ATTEMPTS: Attempts before an item is dead-lettered (default: 5)
        RETRY_BASE_DELAY_SECONDS: Delay after the first failure (default: 60s)
        RETRY_MAX_DELAY_SECONDS: Cap for exponential backoff (default: 3600s)
        RETRY_BATCH_SIZE: Items processed per pass (default: 10)
        RETRY_QUEUE_KEY: Property key holding the live queue
        RETRY_DEAD_LETTER_KEY: Property key holding dead-lettered items

    Exponential Backoff:
        Delay after the n-th failure: min(base_delay * 2 ^ (n - 1), max_delay)

        With defaults (base=60s, max=3600s):
            Failure 1: 60s
            Failure 2: 120s
            Failure 3: 240s
            Failure 4: 480s
    """

    backend: str = Field(
        default="memory",
        alias="RETRY_BACKEND",
        description="Retry backend: 'memory' or 'property'",
    )
    max_attempts: int = Field(
        default=5,
        alias="RETRY_MAX_ATTEMPTS",
        description="Maximum attempts before moving to the dead-letter record",
    )
    base_delay_seconds: int = Field(
        default=60,
        alias="RETRY_BASE_DELAY_SECONDS",
        description="Base delay for exponential backoff (seconds)",
    )
    max_delay_seconds: int = Field(
        default=3600,
        alias="RETRY_MAX_DELAY_SECONDS",
        description="Maximum delay for exponential backoff (seconds, 1 hour)",
    )
    batch_size: int = Field(
        default=10,
        alias="RETRY_BATCH_SIZE",
        description="Number of items to process per pass",
    )
    queue_key: str = Field(default="expiryFIFO", alias="RETRY_QUEUE_KEY")
    dead_letter_key: str = Field(
        default="expiryDeadLetter", alias="RETRY_DEAD_LETTER_KEY"
    )
