"""Google Workspace integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class GoogleWorkspaceSettings(IntegrationSettings):
    """Google Workspace configuration settings.

    Environment Variables:
        GOOGLE_DELEGATED_ADMIN_EMAIL: Admin email for domain-wide delegation
        GOOGLE_WORKSPACE_CUSTOMER_ID: Google Workspace customer ID
        GCP_SERVICE_ACCOUNT_KEY: Service account key JSON content
        MEMBERSHIP_SPREADSHEET_ID: Spreadsheet holding the membership tables

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()
        admin_email = settings.google_workspace.GOOGLE_DELEGATED_ADMIN_EMAIL
        ```
    """

    GOOGLE_DELEGATED_ADMIN_EMAIL: str = Field(
        default="", alias="GOOGLE_DELEGATED_ADMIN_EMAIL"
    )
    GOOGLE_WORKSPACE_CUSTOMER_ID: str = Field(
        default="my_customer", alias="GOOGLE_WORKSPACE_CUSTOMER_ID"
    )
    GCP_SERVICE_ACCOUNT_KEY: str = Field(default="", alias="GCP_SERVICE_ACCOUNT_KEY")
    MEMBERSHIP_SPREADSHEET_ID: str = Field(
        default="", alias="MEMBERSHIP_SPREADSHEET_ID"
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.GCP_SERVICE_ACCOUNT_KEY and self.GOOGLE_DELEGATED_ADMIN_EMAIL)
