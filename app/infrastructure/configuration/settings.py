"""Membership service configuration settings - main aggregator."""

from pydantic_settings import BaseSettings, SettingsConfigDict

# Integration settings
from infrastructure.configuration.integrations import (
    AwsSettings,
    GoogleWorkspaceSettings,
)

# Feature settings
from infrastructure.configuration.features import MembershipFeatureSettings

# Infrastructure settings
from infrastructure.configuration.infrastructure import (
    PropertyStoreSettings,
    RetrySettings,
)


class Settings(BaseSettings):
    """Membership service configuration settings - main aggregator.

    Aggregates all domain-specific settings into a single configuration object:

    - **Integrations**: Google Workspace and AWS
    - **Features**: the membership lifecycle engine
    - **Infrastructure**: retry queue and property store

    Environment Variables:
        PREFIX: Environment prefix; empty in production
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        GIT_SHA: Git commit SHA for deployment tracking

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        domain = settings.membership.domain
        if settings.retry.backend == "property":
            ...
        ```
    """

    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"
    GIT_SHA: str = "Unknown"

    # Integration settings
    google_workspace: GoogleWorkspaceSettings
    aws: AwsSettings

    # Feature settings
    membership: MembershipFeatureSettings

    # Infrastructure settings
    retry: RetrySettings
    property_store: PropertyStoreSettings

    @property
    def is_production(self) -> bool:
        """True if PREFIX is empty (production)."""
        return not bool(self.PREFIX)

    def __init__(self, **kwargs):
        """Initialize Settings with automatic subsettings instantiation.

        Args:
            **kwargs: Optional overrides for specific settings sections.
        """
        settings_map = {
            # Integrations
            "google_workspace": GoogleWorkspaceSettings,
            "aws": AwsSettings,
            # Features
            "membership": MembershipFeatureSettings,
            # Infrastructure
            "retry": RetrySettings,
            "property_store": PropertyStoreSettings,
        }

        for setting_name, setting_class in settings_map.items():
            if setting_name not in kwargs:
                kwargs[setting_name] = setting_class()

        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )
