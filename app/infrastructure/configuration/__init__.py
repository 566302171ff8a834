"""Infrastructure configuration module - public API.

Centralized configuration management using Pydantic BaseSettings with
domain-based organization. Obtain the process-wide instance through
``infrastructure.services.get_settings()``.

Exports:
    Settings: Main settings class (for testing/overrides)
    MembershipFeatureSettings: Membership engine settings class
    RetrySettings: Retry queue settings class
"""

from infrastructure.configuration.settings import Settings
from infrastructure.configuration.features.membership import (
    MembershipFeatureSettings,
)
from infrastructure.configuration.infrastructure.retry import RetrySettings

__all__ = ["Settings", "MembershipFeatureSettings", "RetrySettings"]
