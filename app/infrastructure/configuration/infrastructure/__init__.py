"""Infrastructure settings __init__ - exports all infrastructure settings."""

from infrastructure.configuration.infrastructure.persistence import (
    PropertyStoreSettings,
)
from infrastructure.configuration.infrastructure.retry import RetrySettings

__all__ = [
    "PropertyStoreSettings",
    "RetrySettings",
]
