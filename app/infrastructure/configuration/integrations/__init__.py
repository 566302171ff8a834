"""Integration settings __init__ - exports all integration settings."""

from infrastructure.configuration.integrations.aws import AwsSettings
from infrastructure.configuration.integrations.google import GoogleWorkspaceSettings

__all__ = [
    "AwsSettings",
    "GoogleWorkspaceSettings",
]
