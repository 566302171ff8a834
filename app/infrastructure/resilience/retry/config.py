"""Retry queue configuration and backoff policies."""

from dataclasses import dataclass
from typing import Callable

BackoffPolicy = Callable[[int], float]


@dataclass
class RetryConfig:
    """Configuration for retry queue behavior.

    Attributes:
        max_attempts: Attempts before an item is dead-lettered (an item may
            carry its own override)
        base_delay_seconds: Delay after the first failure
        max_delay_seconds: Cap for exponential backoff
        batch_size: Number of items processed in a single pass

    Example:
        config = RetryConfig(max_attempts=3, base_delay_seconds=30)
    """

    max_attempts: int = 5
    base_delay_seconds: int = 60  # 1 minute
    max_delay_seconds: int = 3600  # 1 hour
    batch_size: int = 10

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must not be negative")
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")


def exponential_backoff(config: RetryConfig) -> BackoffPolicy:
    """Build the default backoff: base * 2 ** (attempts - 1), capped.

    Args:
        config: RetryConfig providing base and cap

    Returns:
        Callable mapping the attempt count after a failure (1, 2, ...) to a
        delay in seconds. Non-decreasing in attempts.
    """

    def _delay(attempts: int) -> float:
        exponent = max(attempts - 1, 0)
        return float(min(config.base_delay_seconds * (2**exponent), config.max_delay_seconds))

    return _delay
